"""Reading collaborator rows into typed events.

Each reader skips rows it cannot interpret (no recipient, bad timestamp) one
at a time, so a single malformed row never hides the rest of a log.
"""

from __future__ import annotations

import logging
from typing import Iterable

from replyline.errors import IdentityNotFound, InvalidTimestamp, SourceUnavailable
from replyline.models import (
    Contact,
    FollowUpEmailEvent,
    OutboundEmailEvent,
    RetrievedMessage,
)
from replyline.normalize import (
    BODY_FIELDS,
    MESSAGE_ID_FIELDS,
    RECIPIENT_FIELDS,
    SENT_AT_FIELDS,
    SEQUENCE_FIELDS,
    THREAD_ID_FIELDS,
    first_field,
    normalize_email,
    parse_sequence,
    parse_timestamp,
    synthesize_contact,
)
from replyline.sources.base import ContactDirectory, Row

logger = logging.getLogger(__name__)


def read_source(store, account_id: str, source: str) -> list[Row]:
    """List an account's rows, degrading to an empty list when the store fails."""
    if store is None:
        return []
    try:
        return list(store.list_by_account(account_id) or [])
    except SourceUnavailable as e:
        logger.warning("%s; continuing without it", e)
    except Exception as e:  # collaborator boundary: any failure means "unavailable"
        logger.warning("%s unavailable (%s: %s); continuing without it", source, type(e).__name__, e)
    return []


def _optional_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def outbound_events(
    rows: Iterable[Row],
    account_id: str,
    contact_email: str | None = None,
) -> list[OutboundEmailEvent]:
    """Send-log rows as events, optionally restricted to one recipient."""
    events = []
    for row in rows:
        recipient = normalize_email(first_field(row, RECIPIENT_FIELDS))
        if not recipient or (contact_email and recipient != contact_email):
            continue
        try:
            sent_at = parse_timestamp(first_field(row, SENT_AT_FIELDS))
        except InvalidTimestamp as e:
            logger.debug("Skipping send-log row for %s: %s", recipient, e)
            continue
        events.append(OutboundEmailEvent(
            account_id=account_id,
            recipient=recipient,
            subject=first_field(row, ("subject",), "") or "",
            sent_at=sent_at,
            message_id=_optional_str(first_field(row, MESSAGE_ID_FIELDS)),
            thread_id=_optional_str(first_field(row, THREAD_ID_FIELDS)),
            body=first_field(row, BODY_FIELDS),
        ))
    return events


def followup_events(
    rows: Iterable[Row],
    account_id: str,
    contact_email: str | None = None,
) -> list[FollowUpEmailEvent]:
    """Follow-up-log rows as events; the sequence count is taken as recorded."""
    events = []
    for row in rows:
        recipient = normalize_email(first_field(row, RECIPIENT_FIELDS))
        if not recipient or (contact_email and recipient != contact_email):
            continue
        try:
            sent_at = parse_timestamp(first_field(row, SENT_AT_FIELDS))
        except InvalidTimestamp as e:
            logger.debug("Skipping follow-up row for %s: %s", recipient, e)
            continue
        events.append(FollowUpEmailEvent(
            account_id=account_id,
            recipient=recipient,
            subject=first_field(row, ("subject",), "") or "",
            sent_at=sent_at,
            sequence=parse_sequence(first_field(row, SEQUENCE_FIELDS)),
            body=first_field(row, BODY_FIELDS),
        ))
    return events


def retrieved_messages(rows: Iterable[Row]) -> list[RetrievedMessage]:
    """Gateway rows as messages. Rows without a usable date are dropped."""
    messages = []
    for row in rows:
        try:
            date = parse_timestamp(first_field(row, ("date", "sent_at", "internalDate")))
        except InvalidTimestamp as e:
            logger.debug("Skipping retrieved message %s: %s", row.get("message_id"), e)
            continue
        messages.append(RetrievedMessage(
            message_id=_optional_str(first_field(row, ("message_id", "messageId", "id"))),
            thread_id=_optional_str(first_field(row, THREAD_ID_FIELDS)),
            sender=normalize_email(first_field(row, ("from", "sender"))),
            recipient=normalize_email(first_field(row, ("to", "recipient"))),
            subject=first_field(row, ("subject",), "") or "",
            body=first_field(row, BODY_FIELDS, "") or "",
            date=date,
        ))
    return messages


def resolve_contact(directory: ContactDirectory | None, email: str) -> Contact:
    """Directory entry for an address, or a synthesized one when unknown."""
    normalized = normalize_email(email)
    try:
        if directory is None:
            raise IdentityNotFound(normalized)
        contact = directory.lookup_by_email(normalized)
        if contact is None:
            raise IdentityNotFound(normalized)
        return contact
    except IdentityNotFound as e:
        logger.debug("%s; synthesizing contact", e)
    except Exception as e:  # directory is a collaborator; an outage must not drop the contact
        logger.warning("Contact directory lookup failed for %s: %s", normalized, e)
    return synthesize_contact(normalized)
