"""Storage service: ebook PDFs on local disk.

Every stored path is relative to EBOOK_STORAGE_ROOT. Admin uploads land
in EBOOK_UPLOAD_DIR and are registered as the product's ProductEbook;
the primary product falls back to PRIMARY_EBOOK_PATH when nothing has
been uploaded.
"""

import logging
import os
import re
import time

from flask import current_app
from sqlalchemy import func

from storefront.errors import EbookNotFound, UploadRejected
from storefront.models.product import ProductEbook
from storefront.services.upsert import upsert

logger = logging.getLogger(__name__)

# Min / max upload size
MIN_FILE_SIZE = 100
MAX_FILE_SIZE = 30 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _storage_root():
    return os.path.realpath(current_app.config["EBOOK_STORAGE_ROOT"])


def _absolute_path(relative_path):
    """Resolve a stored path, refusing anything outside the storage root."""
    root = _storage_root()
    absolute = os.path.realpath(os.path.join(root, relative_path))
    if os.path.commonpath([root, absolute]) != root:
        raise EbookNotFound(relative_path)
    return absolute


def resolve_ebook_path(product):
    """Return the stored path of a product's PDF, or None if it has none."""
    if product.ebook is not None:
        return product.ebook.file_path
    if product.slug == current_app.config.get("PRIMARY_PRODUCT_SLUG"):
        return current_app.config.get("PRIMARY_EBOOK_PATH")
    return None


def read_ebook(relative_path):
    """Read PDF bytes. Raises EbookNotFound if the file cannot be read."""
    if not relative_path:
        raise EbookNotFound(relative_path)
    try:
        with open(_absolute_path(relative_path), "rb") as f:
            return f.read()
    except OSError as e:
        logger.warning(f"Ebook file unreadable: {relative_path}: {e}")
        raise EbookNotFound(relative_path) from e


def validate_upload(file):
    """Validate an uploaded ebook (from request.files).

    Returns the file bytes. Raises UploadRejected with a user-facing message.
    """
    if not file or not file.filename:
        raise UploadRejected("Arquivo obrigatório")
    if not file.filename.lower().endswith(".pdf"):
        raise UploadRejected("Somente PDF é aceito")

    data = file.read()
    if len(data) < MIN_FILE_SIZE:
        raise UploadRejected("Arquivo inválido")
    if len(data) > MAX_FILE_SIZE:
        raise UploadRejected("Arquivo acima de 30MB")
    return data


def save_ebook(file, product_id):
    """Store an uploaded PDF and make it the product's ebook.

    Returns the ProductEbook row (flushed, not committed). If the row
    cannot be written the file is removed again; if the caller's commit
    fails it should call discard_ebook() with the returned file_path.
    """
    data = validate_upload(file)

    safe_name = _UNSAFE_CHARS.sub("_", file.filename)
    upload_dir = current_app.config["EBOOK_UPLOAD_DIR"]
    relative_path = os.path.join(
        upload_dir, f"{product_id}-{int(time.time() * 1000)}-{safe_name}"
    )

    absolute = _absolute_path(relative_path)
    os.makedirs(os.path.dirname(absolute), exist_ok=True)
    with open(absolute, "wb") as f:
        f.write(data)
    logger.info(f"Stored ebook for product {product_id}: {relative_path}")

    try:
        return upsert(
            ProductEbook,
            values={
                "product_id": product_id,
                "file_path": relative_path,
                "file_name": file.filename,
            },
            conflict_on=["product_id"],
            update={
                "file_path": relative_path,
                "file_name": file.filename,
                "updated_at": func.now(),
            },
        )
    except Exception:
        discard_ebook(relative_path)
        raise


def discard_ebook(relative_path):
    """Delete a stored PDF that never made it into the database."""
    try:
        os.remove(_absolute_path(relative_path))
    except OSError as e:
        logger.warning(f"Could not remove orphaned ebook {relative_path}: {e}")
    else:
        logger.info(f"Removed orphaned ebook {relative_path}")
