"""
Transactional email over SMTP.

send() is the gateway contract: it takes a rendered message and raises
if delivery fails, leaving the caller to decide whether that matters.
The purchase webhook treats failures as non-fatal; see
fulfillment_service._notify_access_granted.

Usage:
    from storefront.services.email_service import send_access_granted_email

    send_access_granted_email(
        email="member@example.com",
        name="Ana",
        setup_url="https://example.com/definir-senha?token=...",
    )
"""

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _build_message(app, to, subject, html, text):
    from_name = app.config.get("MAIL_FROM_NAME", "Marketing Digital Top")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME", "")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)

    # Plain text first: clients show the last alternative they understand.
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _send_smtp(app, msg):
    host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    port = app.config.get("MAIL_SMTP_PORT", 587)
    username = app.config.get("MAIL_USERNAME")
    password = app.config.get("MAIL_PASSWORD")

    if not username or not password:
        # Links carry one-time tokens, so only the envelope is logged.
        logger.info(
            f"Email not sent (SMTP not configured) to {msg['To']} - {msg['Subject']}"
        )
        return

    with smtplib.SMTP(host, port, timeout=30) as server:
        server.ehlo()
        server.starttls()
        server.ehlo()
        server.login(username, password)
        server.send_message(msg)
    logger.info(f"Email sent to {msg['To']} - {msg['Subject']}")


def send(to, subject, html, text):
    """Deliver one message synchronously. Raises on SMTP failure."""
    app = current_app._get_current_object()
    _send_smtp(app, _build_message(app, to, subject, html, text))


def _send_in_background(app, msg):
    with app.app_context():
        try:
            _send_smtp(app, msg)
        except Exception as e:
            logger.error(f"Failed to send email to {msg['To']}: {e}")


def send_async(to, subject, html, text):
    """Same as send but returns immediately; failures are only logged."""
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, html, text)
    thread = threading.Thread(target=_send_in_background, args=(app, msg))
    thread.daemon = True
    thread.start()


def _render(template, **context):
    return (
        render_template(f"emails/{template}.html", **context),
        render_template(f"emails/{template}.txt", **context),
    )


def send_access_granted_email(email, name, setup_url):
    """Tell a buyer their purchase is confirmed and link the password setup."""
    html, text = _render(
        "access_granted",
        name=(name or "").strip(),
        setup_url=setup_url,
        product_title=current_app.config.get("PRIMARY_PRODUCT_TITLE", ""),
    )
    send(email, "Seu acesso está liberado ✅", html, text)


def send_password_recovery_email(email, name, setup_url):
    """Send a recovery link. Does not block the request."""
    html, text = _render(
        "password_recovery",
        name=(name or "").strip(),
        setup_url=setup_url,
    )
    send_async(email, "Redefina sua senha", html, text)
