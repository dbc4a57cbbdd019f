# Overview: Object storage for uploaded ID card and bank book images.

"""
Upload Storage Service

Stores uploaded images on the local filesystem under UPLOAD_FOLDER and
returns a stable public URL. The database only ever stores that URL,
never raw bytes.

Layout: {UPLOAD_FOLDER}/attachments/{category}_{timestamp}_{random}.{ext}
URL:    {PUBLIC_BASE_URL}/files/attachments/...
"""

from __future__ import annotations

import os
import secrets
import time

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import ValidationError
from .concurrency import StorageFailure


UPLOAD_CATEGORIES = ("id_card_front", "id_card_back", "bank_book")
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "heic", "pdf"}
ATTACHMENTS_DIR = "attachments"


def upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _extension(filename: str | None) -> str:
    safe = secure_filename(filename or "")
    if "." not in safe:
        return "jpg"
    return safe.rsplit(".", 1)[1].lower()


def _size_of(file: FileStorage) -> int:
    stream = file.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def public_url(path: str) -> str:
    return f"{current_app.config['PUBLIC_BASE_URL']}/files/{path}"


def save_upload(file: FileStorage | None, category: str | None) -> dict:
    """
    Persist one uploaded file.

    Returns {"url": ..., "path": ...}.

    Raises:
        ValidationError: missing file, unknown category, bad extension, too large
        StorageFailure: the file could not be written
    """
    if file is None or not file.filename:
        raise ValidationError("請選擇檔案")
    if category not in UPLOAD_CATEGORIES:
        raise ValidationError(f"type must be one of: {', '.join(UPLOAD_CATEGORIES)}")

    ext = _extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type not allowed: .{ext}")

    max_bytes = current_app.config["MAX_UPLOAD_BYTES"]
    if _size_of(file) > max_bytes:
        raise ValidationError(f"File exceeds {max_bytes // (1024 * 1024)} MB limit")

    timestamp = int(time.time() * 1000)
    file_name = f"{category}_{timestamp}_{secrets.token_hex(4)}.{ext}"
    relative_path = f"{ATTACHMENTS_DIR}/{file_name}"

    target_dir = os.path.join(upload_root(), ATTACHMENTS_DIR)
    try:
        os.makedirs(target_dir, exist_ok=True)
        file.save(os.path.join(target_dir, file_name))
    except OSError as exc:
        current_app.logger.exception("Failed to store upload %s", relative_path)
        raise StorageFailure("上傳失敗") from exc

    return {"url": public_url(relative_path), "path": relative_path}
