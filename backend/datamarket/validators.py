"""Shared limits and format checks.

The same constants back the request schemas, the ORM models and the upload handling so that
client-facing validation and storage validation cannot drift apart.
"""

from __future__ import annotations

import json
import logging
import os
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from eth_utils.address import is_address

logger = logging.getLogger(__name__)

DATASET_CATEGORIES: tuple[str, ...] = (
    "Healthcare",
    "Finance",
    "E-commerce",
    "Technology",
    "Education",
    "Marketing",
    "Social Media",
    "IoT",
    "Transportation",
    "Entertainment",
    "Sports",
    "Government",
    "Other",
)
CURRENCIES: tuple[str, ...] = ("ETH", "USD")
USER_ROLES: tuple[str, ...] = ("user", "admin")
TRANSACTION_STATUSES: tuple[str, ...] = ("pending", "completed", "failed", "refunded")
TRANSACTION_TYPES: tuple[str, ...] = ("purchase", "sale")
PAYMENT_METHODS: tuple[str, ...] = ("metamask", "wallet_connect", "other")

# extension -> stored fileType
FILE_TYPE_BY_EXTENSION: dict[str, str] = {
    ".csv": "csv",
    ".json": "json",
    ".xlsx": "xlsx",
    ".pdf": "pdf",
    ".zip": "zip",
    ".sql": "sql",
    ".xml": "xml",
}
FILE_TYPES: tuple[str, ...] = (*FILE_TYPE_BY_EXTENSION.values(), "other")
ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "text/csv",
        "application/json",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/pdf",
        "application/zip",
        "application/sql",
        "application/xml",
        "text/xml",
    }
)
UPLOAD_FIELD_NAME = "datasetFile"

TITLE_MIN, TITLE_MAX = 3, 100
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 2000
PRICE_MIN, PRICE_MAX = Decimal("0"), Decimal("1000")
MAX_TAGS, MAX_TAG_LEN = 10, 30
USERNAME_MIN, USERNAME_MAX = 3, 30
BIO_MAX = 500
PASSWORD_MIN, PASSWORD_MAX = 8, 128
SEARCH_MAX = 100
MAX_FILE_NAME_LEN = 255

PROCESSING_FEE_RATE = Decimal("0.02")
MONEY_QUANTUM = Decimal("0.00000001")

ADDR_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def validate_eth_address(addr: str) -> bool:
    if not isinstance(addr, str) or ADDR_RE.fullmatch(addr) is None:
        return False
    try:
        return bool(is_address(addr))
    except Exception:
        logger.debug("validate_eth_address failed for %r", addr, exc_info=True)
        return False


def validate_tx_hash(s: str) -> bool:
    return isinstance(s, str) and TX_HASH_RE.fullmatch(s) is not None


def validate_email(s: str) -> bool:
    return isinstance(s, str) and EMAIL_RE.fullmatch(s) is not None


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def processing_fee(amount: Decimal) -> Decimal:
    """Platform cut: a fixed 2 % of the amount, rounded to 8 decimal places."""
    return quantize_money(amount * PROCESSING_FEE_RATE)


def normalize_tags(raw: Any) -> list[str]:
    """
    Accepts a JSON-array string, a comma separated string or a list.
    Returns trimmed, non-empty, de-duplicated tags in first-seen order (case-sensitive).
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        clean = raw.strip()
        items: list[Any]
        if clean.startswith("["):
            try:
                parsed = json.loads(clean)
                items = parsed if isinstance(parsed, list) else [parsed]
            except json.JSONDecodeError:
                items = clean.split(",")
        else:
            items = clean.split(",")
    elif isinstance(raw, (list, tuple, set)):
        items = list(raw)
    else:
        return []

    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        tag = (item if isinstance(item, str) else str(item)).strip()
        if tag and tag not in seen:
            seen.add(tag)
            out.append(tag)
    return out


def tag_errors(tags: list[str]) -> list[str]:
    errors: list[str] = []
    if len(tags) > MAX_TAGS:
        errors.append(f"tags: Maximum {MAX_TAGS} tags allowed")
    if any(len(t) > MAX_TAG_LEN for t in tags):
        errors.append(f"tags: Each tag must be {MAX_TAG_LEN} characters or less")
    return errors


def file_type_for(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return FILE_TYPE_BY_EXTENSION.get(ext, "other")


def is_allowed_upload(filename: str, mime: str | None) -> bool:
    ext = os.path.splitext(filename or "")[1].lower()
    return (mime or "") in ALLOWED_MIME_TYPES or ext in FILE_TYPE_BY_EXTENSION


def sanitize_filename(name: str) -> str:
    # Keep only basename, strip path components
    base = os.path.basename(name or "")
    base = base.replace("..", "").replace("\\", "").replace("/", "")
    base = "".join(ch for ch in base if 31 < ord(ch) < 127)
    if not base:
        base = "dataset"
    if len(base) > MAX_FILE_NAME_LEN:
        base = base[:MAX_FILE_NAME_LEN]
    return base
