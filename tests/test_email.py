"""Tests for the SMTP email service."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from storefront.services import email_service


@pytest.fixture
def smtp_configured(app, monkeypatch):
    monkeypatch.setitem(app.config, "MAIL_USERNAME", "loja@example.com")
    monkeypatch.setitem(app.config, "MAIL_PASSWORD", "app-password")


class TestAccessGrantedEmail:

    @patch("storefront.services.email_service.smtplib.SMTP")
    def test_sends_both_parts_with_link(self, mock_smtp, app, smtp_configured):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server

        with app.app_context():
            email_service.send_access_granted_email(
                "ana@example.com", "Ana", "http://localhost:5000/definir-senha?token=abc"
            )

        server.login.assert_called_once_with("loja@example.com", "app-password")
        msg = server.send_message.call_args[0][0]
        assert msg["To"] == "ana@example.com"
        assert msg["Subject"] == "Seu acesso está liberado ✅"

        parts = msg.get_payload()
        assert [p.get_content_type() for p in parts] == ["text/plain", "text/html"]
        for part in parts:
            body = part.get_payload(decode=True).decode("utf-8")
            assert "definir-senha?token=abc" in body
            assert "Ana" in body

    @patch("storefront.services.email_service.smtplib.SMTP")
    def test_smtp_failure_raises(self, mock_smtp, app, smtp_configured):
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = (
            smtplib.SMTPException("rejected")
        )

        with app.app_context():
            with pytest.raises(smtplib.SMTPException):
                email_service.send_access_granted_email("ana@example.com", None, "http://x")

    @patch("storefront.services.email_service.smtplib.SMTP")
    def test_unconfigured_smtp_skips_send(self, mock_smtp, app, caplog):
        with app.app_context():
            email_service.send_access_granted_email(
                "ana@example.com", "Ana", "http://localhost:5000/definir-senha?token=secret123"
            )

        mock_smtp.assert_not_called()
        assert "secret123" not in caplog.text
