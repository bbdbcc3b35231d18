"""Reader state: where a member stopped reading and what they highlighted.

The reader app saves its whole state in one PUT. The state row is
upserted by (user, product); highlights are replaced wholesale in the
same transaction. Wire keys are camelCase, as the reader app sends them:

    {
      "activeChapter": 3,
      "scrollProgress": 40,          # 0-100
      "fontScale": 1.1,              # 0.85-1.6
      "readChapters": [0, 1, 2],
      "completedModules": [0],
      "highlights": [
        {"id": "h1", "chapterIndex": 0, "paragraphIndex": 2,
         "startOffset": 5, "endOffset": 20, "color": "yellow",
         "selectedText": "..."}
      ]
    }
"""

import logging

from sqlalchemy import func

from storefront.errors import ReaderStateInvalid
from storefront.extensions import db
from storefront.models.reader_state import EbookHighlight, EbookReaderState
from storefront.services.upsert import upsert

logger = logging.getLogger(__name__)

MAX_INDEX_ITEMS = 500
MAX_HIGHLIGHTS = 2000
MIN_FONT_SCALE = 0.85
MAX_FONT_SCALE = 1.6


def _int(value, name, minimum=0, maximum=None):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ReaderStateInvalid(f"'{name}' must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ReaderStateInvalid(f"'{name}' must be an integer")
        value = int(value)
    if value < minimum or (maximum is not None and value > maximum):
        raise ReaderStateInvalid(f"'{name}' is out of range")
    return value


def _string(value, name, max_length):
    if not isinstance(value, str) or not value or len(value) > max_length:
        raise ReaderStateInvalid(f"'{name}' must be 1-{max_length} characters")
    return value


def _int_list(value, name):
    if not isinstance(value, list) or len(value) > MAX_INDEX_ITEMS:
        raise ReaderStateInvalid(f"'{name}' must be a list of at most {MAX_INDEX_ITEMS}")
    return [_int(item, name) for item in value]


def _highlight(data):
    if not isinstance(data, dict):
        raise ReaderStateInvalid("Each highlight must be an object")
    return {
        "client_id": _string(data.get("id"), "id", 64),
        "chapter_index": _int(data.get("chapterIndex"), "chapterIndex"),
        "paragraph_index": _int(data.get("paragraphIndex"), "paragraphIndex"),
        "start_offset": _int(data.get("startOffset"), "startOffset"),
        "end_offset": _int(data.get("endOffset"), "endOffset"),
        "color": _string(data.get("color"), "color", 32),
        "selected_text": _string(data.get("selectedText"), "selectedText", 500),
    }


def parse_state_payload(body):
    """Validate a decoded PUT body. Raises ReaderStateInvalid."""
    if not isinstance(body, dict):
        raise ReaderStateInvalid("Body must be an object")

    font_scale = body.get("fontScale")
    if isinstance(font_scale, bool) or not isinstance(font_scale, (int, float)):
        raise ReaderStateInvalid("'fontScale' must be a number")
    if not MIN_FONT_SCALE <= font_scale <= MAX_FONT_SCALE:
        raise ReaderStateInvalid("'fontScale' is out of range")

    highlights = body.get("highlights")
    if not isinstance(highlights, list) or len(highlights) > MAX_HIGHLIGHTS:
        raise ReaderStateInvalid(f"'highlights' must be a list of at most {MAX_HIGHLIGHTS}")

    return {
        "active_chapter": _int(body.get("activeChapter"), "activeChapter"),
        "scroll_progress": _int(body.get("scrollProgress"), "scrollProgress", maximum=100),
        "font_scale": float(font_scale),
        "read_chapters": _int_list(body.get("readChapters"), "readChapters"),
        "completed_modules": _int_list(body.get("completedModules"), "completedModules"),
        "highlights": [_highlight(h) for h in highlights],
    }


def _highlight_to_dict(highlight):
    return {
        "id": highlight.client_id,
        "chapterIndex": highlight.chapter_index,
        "paragraphIndex": highlight.paragraph_index,
        "startOffset": highlight.start_offset,
        "endOffset": highlight.end_offset,
        "color": highlight.color,
        "selectedText": highlight.selected_text,
    }


def get_reader_state(user_id, product_id):
    """The saved state in wire format, with defaults if nothing was saved."""
    state = EbookReaderState.query.filter_by(
        user_id=user_id, product_id=product_id
    ).first()
    highlights = (
        EbookHighlight.query
        .filter_by(user_id=user_id, product_id=product_id)
        .order_by(EbookHighlight.position)
        .all()
    )
    return {
        "activeChapter": state.active_chapter if state else 0,
        "scrollProgress": state.scroll_progress if state else 0,
        "fontScale": state.font_scale if state else 1,
        "readChapters": state.read_chapters if state else [],
        "completedModules": state.completed_modules if state else [],
        "highlights": [_highlight_to_dict(h) for h in highlights],
    }


def save_reader_state(user_id, product_id, payload):
    """Store a parsed payload for one member and product, then commit.

    Empty highlights (end offset not past the start) are dropped.
    """
    fields = {
        key: payload[key]
        for key in (
            "active_chapter", "scroll_progress", "font_scale",
            "read_chapters", "completed_modules",
        )
    }
    upsert(
        EbookReaderState,
        values={"user_id": user_id, "product_id": product_id, **fields},
        conflict_on=["user_id", "product_id"],
        update={**fields, "updated_at": func.now()},
    )

    EbookHighlight.query.filter_by(
        user_id=user_id, product_id=product_id
    ).delete(synchronize_session=False)

    kept = [h for h in payload["highlights"] if h["end_offset"] > h["start_offset"]]
    db.session.add_all([
        EbookHighlight(user_id=user_id, product_id=product_id, position=i, **h)
        for i, h in enumerate(kept)
    ])
    db.session.commit()

    logger.info(
        f"Saved reader state for user {user_id} product {product_id} "
        f"({len(kept)} highlights)"
    )
