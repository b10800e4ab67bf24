"""Shared normalization and dedup helpers.

Every join in the engine goes through ``normalize_email`` and every timestamp
through ``parse_timestamp``; row readers use ``first_field`` because log rows
come from several generations of writers with different column names.
"""

from __future__ import annotations

import email.utils
from datetime import datetime, timezone
from typing import Any, Mapping

from dateutil import parser as dateutil_parser

from replyline.errors import InvalidTimestamp
from replyline.models import Contact

RECIPIENT_FIELDS = ("recipient", "to", "recipient_email", "email")
SENT_AT_FIELDS = ("sent_at", "sentAt", "created_at")
MESSAGE_ID_FIELDS = ("message_id", "messageId")
THREAD_ID_FIELDS = ("thread_id", "threadId")
SEQUENCE_FIELDS = ("followup_sequence", "followupSequence", "followup_count")
BODY_FIELDS = ("body", "content")

SYNTHETIC_ID_PREFIX = "email-"

# Epoch values above this are milliseconds (Gmail internalDate)
_EPOCH_MS_THRESHOLD = 10**11

_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def normalize_email(value: Any) -> str:
    """Lower-case and trim an address, reducing ``Name <addr>`` to ``addr``."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    if "<" in text:
        _, addr = email.utils.parseaddr(text)
        if addr:
            text = addr
    return text.strip().lower()


def first_field(row: Mapping[str, Any], names: tuple[str, ...] | list[str], default: Any = None) -> Any:
    """Return the first non-empty value among ``names`` in ``row``."""
    for name in names:
        try:
            value = row[name]
        except (KeyError, IndexError):
            continue
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def _from_epoch(value: Any, number: float) -> datetime:
    if number > _EPOCH_MS_THRESHOLD:
        number = number / 1000.0
    try:
        return datetime.fromtimestamp(number, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidTimestamp(value) from exc


def _has_full_iso_date(text: str) -> bool:
    date_part = text[:10].split("T")[0]
    return sum(ch.isdigit() for ch in date_part) >= 8


def _parse_free_form(value: Any, text: str) -> datetime:
    # dateutil fills missing fields from its default; two defaults that differ
    # in every date field expose a partial date such as "March" or "5 pm".
    try:
        first, second = (dateutil_parser.parse(text, default=d) for d in _FILL_DEFAULTS)
    except (ValueError, OverflowError) as exc:
        raise InvalidTimestamp(value) from exc
    if first != second:
        raise InvalidTimestamp(value)
    return first


def _parse_text(value: Any, text: str) -> datetime:
    if text.isdigit() and len(text) > 8:
        return _from_epoch(value, float(text))
    if _has_full_iso_date(text):
        try:
            return dateutil_parser.isoparse(text)
        except (ValueError, OverflowError):
            pass
    try:
        return email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return _parse_free_form(value, text)


def parse_timestamp(value: Any) -> datetime:
    """Parse a log or mail timestamp into an aware UTC datetime.

    Accepts datetimes, epoch seconds/milliseconds (numbers, or digit strings
    longer than an ISO basic date), ISO 8601 strings and RFC 2822 mail dates.
    Free-form text must name a full date. Naive values are taken as UTC.

    Raises InvalidTimestamp for anything else.
    """
    if value is None or isinstance(value, bool):
        raise InvalidTimestamp(value)

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = _from_epoch(value, float(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidTimestamp(value)
        dt = _parse_text(value, text)
    else:
        raise InvalidTimestamp(value)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_sequence(value: Any) -> int:
    """Follow-up batch size; missing, non-numeric or < 1 counts as one send."""
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        return 1
    return count if count >= 1 else 1


def message_key(message_id: str) -> str:
    return f"mid:{message_id}"


def composite_key(source: str, recipient: str, timestamp: datetime) -> str:
    """Fallback identity for an event without a message id."""
    return f"{source}|{normalize_email(recipient)}|{timestamp.isoformat()}"


def synthesize_contact(address: str) -> Contact:
    """Minimal identity for an address the directory does not know."""
    normalized = normalize_email(address)
    local_part = normalized.split("@")[0] if normalized else ""
    return Contact(
        id=f"{SYNTHETIC_ID_PREFIX}{normalized}",
        name=local_part or normalized,
        email=normalized,
        synthesized=True,
    )
