"""Tests for the watermark service (per-download PDF personalization)."""

import io
import re
from datetime import datetime, timedelta, timezone

import pytest
from pypdf import PdfReader

from conftest import make_pdf

from storefront.errors import PersonalizationError
from storefront.services.watermark_service import (
    format_generated_at,
    personalize_pdf,
    session_fingerprint,
)

GENERATED_AT = datetime(2026, 10, 19, 15, 30, 45, 123000, tzinfo=timezone.utc)


class TestSessionFingerprint:
    """Tests for session_fingerprint."""

    def test_is_ten_uppercase_hex_chars(self):
        fp = session_fingerprint("u-1", "ana@example.com", "ansiedade", GENERATED_AT)
        assert len(fp) == 10
        assert fp == fp.upper()
        int(fp, 16)

    def test_is_deterministic(self):
        a = session_fingerprint("u-1", "ana@example.com", "ansiedade", GENERATED_AT)
        b = session_fingerprint("u-1", "ana@example.com", "ansiedade", GENERATED_AT)
        assert a == b

    def test_same_instant_in_another_zone_matches(self):
        local = GENERATED_AT.astimezone(timezone(timedelta(hours=-3)))
        assert session_fingerprint("u-1", "a@x.com", "s", GENERATED_AT) == (
            session_fingerprint("u-1", "a@x.com", "s", local)
        )

    def test_changes_with_any_input(self):
        base = session_fingerprint("u-1", "ana@example.com", "ansiedade", GENERATED_AT)
        later = GENERATED_AT + timedelta(milliseconds=1)
        assert base != session_fingerprint("u-2", "ana@example.com", "ansiedade", GENERATED_AT)
        assert base != session_fingerprint("u-1", "bia@example.com", "ansiedade", GENERATED_AT)
        assert base != session_fingerprint("u-1", "ana@example.com", "outro", GENERATED_AT)
        assert base != session_fingerprint("u-1", "ana@example.com", "ansiedade", later)


def test_format_generated_at_uses_sao_paulo_time():
    assert format_generated_at(GENERATED_AT) == "19/10/2026, 12:30:45"


class TestPersonalizePdf:
    """Tests for personalize_pdf."""

    def test_stamps_every_page(self):
        out = personalize_pdf(
            make_pdf(pages=3), "u-1", "ana@example.com", "ansiedade",
            generated_at=GENERATED_AT,
        )
        fp = session_fingerprint("u-1", "ana@example.com", "ansiedade", GENERATED_AT)

        reader = PdfReader(io.BytesIO(out))
        assert len(reader.pages) == 3
        for page in reader.pages:
            text = page.extract_text()
            assert "ana@example.com" in text
            assert fp in text
            assert "Capitulo de teste" in text

    def test_keeps_page_size(self):
        out = personalize_pdf(make_pdf(), "u-1", "ana@example.com", "ansiedade")
        box = PdfReader(io.BytesIO(out)).pages[0].mediabox
        assert (float(box.width), float(box.height)) == (595, 842)

    def test_different_members_get_different_files(self):
        source = make_pdf()
        a = personalize_pdf(source, "u-1", "ana@example.com", "ansiedade",
                            generated_at=GENERATED_AT)
        b = personalize_pdf(source, "u-2", "bia@example.com", "ansiedade",
                            generated_at=GENERATED_AT)
        assert a != b

    def test_each_download_gets_its_own_session_footer(self):
        """Same member, two generation instants: the footers differ."""
        source = make_pdf(pages=1)
        later = GENERATED_AT + timedelta(seconds=1)
        footers = []
        for generated_at in (GENERATED_AT, later):
            out = personalize_pdf(source, "u-1", "ana@example.com", "ansiedade",
                                  generated_at=generated_at)
            text = PdfReader(io.BytesIO(out)).pages[0].extract_text()
            match = re.search(r"Sessao: ([0-9A-F]{10})", text)
            assert match is not None
            footers.append(match.group(1))

        assert footers[0] != footers[1]
        assert footers[0] == session_fingerprint(
            "u-1", "ana@example.com", "ansiedade", GENERATED_AT
        )

    def test_corrupt_source_raises(self):
        with pytest.raises(PersonalizationError):
            personalize_pdf(b"definitely not a pdf", "u-1", "a@x.com", "ansiedade")

    def test_empty_source_raises(self):
        with pytest.raises(PersonalizationError):
            personalize_pdf(b"", "u-1", "a@x.com", "ansiedade")
