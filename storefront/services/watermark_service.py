"""Watermark service: per-download forensic stamping of ebook PDFs.

Every download gets a fresh copy with the buyer's identity on each page:
- a faint crossed line pattern over the whole page
- a header with email, user id and generation time
- a large low-opacity diagonal line with email, user id and fingerprint
- a footer with a short session fingerprint

The fingerprint hashes the user, product and generation instant, so no
two downloads share one. Output is never cached.

The overlay for each page is drawn with ReportLab at the page's size and
merged onto the source page with pypdf, entirely in memory.
"""

import hashlib
import io
import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from pypdf import PdfReader, PdfWriter, Transformation
from pypdf.errors import PyPdfError
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from storefront.errors import PersonalizationError

logger = logging.getLogger(__name__)

DISPLAY_TIMEZONE = "America/Sao_Paulo"

PATTERN_SPACING = 72
PATTERN_LINE_WIDTH = 0.7
PATTERN_COLOR = (0.48, 0.42, 0.35)
PATTERN_OPACITY_RISING = 0.12
PATTERN_OPACITY_FALLING = 0.08

TEXT_COLOR = (0.13, 0.13, 0.16)
GHOST_COLOR = (0.18, 0.16, 0.14)

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


def _iso_millis(moment):
    """UTC ISO-8601 with milliseconds and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def session_fingerprint(user_id, user_email, product_slug, generated_at):
    """10 uppercase hex chars identifying one generated copy."""
    material = f"{user_id}|{user_email}|{product_slug}|{_iso_millis(generated_at)}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:10].upper()


def format_generated_at(generated_at, tz_name=DISPLAY_TIMEZONE):
    """pt-BR style timestamp, e.g. '19/10/2026, 14:03:05'."""
    local = generated_at.astimezone(ZoneInfo(tz_name))
    return local.strftime("%d/%m/%Y, %H:%M:%S")


def _draw_cross_pattern(pdf, width, height):
    pdf.saveState()
    pdf.setLineWidth(PATTERN_LINE_WIDTH)
    pdf.setStrokeColorRGB(*PATTERN_COLOR)

    pdf.setStrokeAlpha(PATTERN_OPACITY_RISING)
    x = -height
    while x < width + height:
        pdf.line(x, 0, x + height, height)
        x += PATTERN_SPACING

    pdf.setStrokeAlpha(PATTERN_OPACITY_FALLING)
    x = -height
    while x < width + height:
        pdf.line(x, height, x + height, 0)
        x += PATTERN_SPACING

    pdf.restoreState()


def _draw_text(pdf, text, x, y, font, size, color, opacity, angle=0):
    pdf.saveState()
    pdf.setFont(font, size)
    pdf.setFillColorRGB(*color)
    pdf.setFillAlpha(opacity)
    pdf.translate(x, y)
    if angle:
        pdf.rotate(angle)
    pdf.drawString(0, 0, text)
    pdf.restoreState()


def _centered_x(text, font, size, width, margin=20):
    return max((width - stringWidth(text, font, size)) / 2, margin)


def render_overlay(width, height, header, ghost, footer):
    """Draw one overlay page of the given size. Returns PDF bytes."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(width, height))

    _draw_cross_pattern(pdf, width, height)

    ghost_size = 20
    ghost_width = stringWidth(ghost, FONT_BOLD, ghost_size)
    _draw_text(
        pdf, ghost, (width - ghost_width) / 2, height / 2,
        FONT_BOLD, ghost_size, GHOST_COLOR, 0.08, angle=28,
    )
    _draw_text(
        pdf, header, _centered_x(header, FONT_REGULAR, 9, width), height - 18,
        FONT_REGULAR, 9, TEXT_COLOR, 0.6,
    )
    _draw_text(
        pdf, footer, _centered_x(footer, FONT_BOLD, 8, width), 12,
        FONT_BOLD, 8, TEXT_COLOR, 0.75,
    )

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def personalize_pdf(source_bytes, user_id, user_email, product_slug,
                    generated_at=None, tz_name=DISPLAY_TIMEZONE):
    """Return a watermarked copy of ``source_bytes`` for one member.

    Raises PersonalizationError if the source cannot be read as a PDF.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    fingerprint = session_fingerprint(user_id, user_email, product_slug, generated_at)

    header = (
        f"{user_email}  |  ID: {user_id}  |  "
        f"Gerado: {format_generated_at(generated_at, tz_name)}"
    )
    ghost = f"{user_email} • {user_id} • {fingerprint}"
    footer = f"Sessao: {fingerprint}"

    try:
        writer = PdfWriter(clone_from=PdfReader(io.BytesIO(source_bytes)))
        overlays = {}
        for page in writer.pages:
            box = page.mediabox
            size = (float(box.width), float(box.height))
            if size not in overlays:
                overlays[size] = PdfReader(io.BytesIO(
                    render_overlay(size[0], size[1], header, ghost, footer)
                )).pages[0]
            page.merge_transformed_page(
                overlays[size],
                Transformation().translate(float(box.left), float(box.bottom)),
            )

        out = io.BytesIO()
        writer.write(out)
    except (PyPdfError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Could not personalize {product_slug} for user {user_id}: {e}")
        raise PersonalizationError(str(e)) from e

    logger.info(
        f"Personalized {product_slug} for user {user_id} "
        f"({len(writer.pages)} pages, session {fingerprint})"
    )
    return out.getvalue()
