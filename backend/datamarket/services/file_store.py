"""On-disk storage for uploaded dataset files. Files are opaque blobs."""

from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from datamarket.config import settings
from datamarket.errors import ValidationError
from datamarket.validators import file_type_for, is_allowed_upload, sanitize_filename

log = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredFile:
    path: str
    size: int
    original_name: str
    file_type: str


def _target_name(original: str) -> str:
    ext = os.path.splitext(original)[1].lower()
    return f"dataset-{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


def save(
    stream: BinaryIO,
    filename: str,
    content_type: str | None,
    *,
    upload_dir: Path | None = None,
    max_bytes: int | None = None,
) -> StoredFile:
    """Copy an upload to the upload directory, enforcing the type allow-list and the size cap."""
    original = sanitize_filename(filename)
    if not is_allowed_upload(original, content_type):
        raise ValidationError(
            "Invalid file type. Only CSV, JSON, XLSX, PDF, ZIP, SQL, and XML files are allowed.",
            errors=["INVALID_FILE_TYPE"],
        )

    limit = int(max_bytes or settings.max_upload_bytes)
    directory = Path(upload_dir or settings.upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / _target_name(original)

    size = 0
    try:
        with open(target, "wb") as out:
            while chunk := stream.read(CHUNK_SIZE):
                size += len(chunk)
                if size > limit:
                    raise ValidationError(
                        f"File too large. Maximum size is {limit // (1024 * 1024)}MB.",
                        errors=["FILE_TOO_LARGE"],
                    )
                out.write(chunk)
    except BaseException:
        remove(str(target))
        raise

    log.info("stored upload name=%s size=%d", target.name, size)
    return StoredFile(path=str(target.resolve()), size=size, original_name=original, file_type=file_type_for(original))


def remove(path: str | None) -> bool:
    """Best-effort delete; failures are logged and never raised."""
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        log.warning("file removal failed path=%s err=%s", path, e)
        return False
