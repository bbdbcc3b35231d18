"""Ebook reader progress.

- EbookReaderState: one row per (user, product) with the reader's
  position, font scale and finished chapters/modules.
- EbookHighlight: text highlights, replaced wholesale on every save.
  ``client_id`` is the id the reader app gave the highlight.
"""

import uuid

from storefront.extensions import db


class EbookReaderState(db.Model):
    __tablename__ = "ebook_reader_states"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_reader_state_user_product"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False
    )
    active_chapter = db.Column(db.Integer, nullable=False, default=0)
    scroll_progress = db.Column(db.Integer, nullable=False, default=0)  # 0-100
    font_scale = db.Column(db.Float, nullable=False, default=1.0)
    read_chapters = db.Column(db.JSON, nullable=False, default=list)
    completed_modules = db.Column(db.JSON, nullable=False, default=list)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<EbookReaderState user={self.user_id} product={self.product_id}>"


class EbookHighlight(db.Model):
    __tablename__ = "ebook_highlights"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False
    )
    client_id = db.Column(db.String(64), nullable=False)
    position = db.Column(db.Integer, nullable=False)  # order within the save
    chapter_index = db.Column(db.Integer, nullable=False)
    paragraph_index = db.Column(db.Integer, nullable=False)
    start_offset = db.Column(db.Integer, nullable=False)
    end_offset = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(32), nullable=False)
    selected_text = db.Column(db.String(500), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.Index("ix_ebook_highlights_user_product", "user_id", "product_id"),
    )

    def __repr__(self):
        return f"<EbookHighlight {self.client_id}>"
