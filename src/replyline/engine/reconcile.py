"""Conversation reconciliation: one deduplicated, ordered event stream per contact.

Sources, in ingestion order:
    1. send log (OUTBOUND)
    2. follow-up log (FOLLOWUP)
    3. retrieval gateway (OUTBOUND or INBOUND, classified by sender)

Gateway messages carry body text and are authoritative: a log row sharing a
message id with a retrieved message is dropped in its favour. Everything else
from both sides is kept, since the logs may hold sends the provider no longer
serves and the provider holds replies the logs never record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from replyline.engine.rows import (
    followup_events,
    outbound_events,
    read_source,
    retrieved_messages,
)
from replyline.errors import SourceUnavailable
from replyline.gateway.guard import TimeoutGuard
from replyline.models import (
    ConversationEvent,
    Direction,
    EventSource,
    FollowUpEmailEvent,
    OutboundEmailEvent,
    RetrievedMessage,
)
from replyline.normalize import composite_key, message_key, normalize_email
from replyline.sources.base import FollowUpLogStore, MessageRetrievalGateway, SendLogStore

logger = logging.getLogger(__name__)


@dataclass
class ConversationSources:
    """Everything loaded for one (account, contact) pair, before and after merging."""

    account_id: str
    contact_email: str
    outbound: list[OutboundEmailEvent] = field(default_factory=list)
    followups: list[FollowUpEmailEvent] = field(default_factory=list)
    retrieved: list[RetrievedMessage] = field(default_factory=list)
    events: list[ConversationEvent] = field(default_factory=list)
    gateway_ok: bool = True


def classify_direction(sender: str, account_email: str, contact_email: str) -> Direction:
    """OUTBOUND when the account sent it; the contact's and unknown senders' mail is INBOUND."""
    sender = normalize_email(sender)
    if sender and sender == account_email:
        return Direction.OUTBOUND
    if sender and sender == contact_email:
        return Direction.INBOUND
    # Aliases, forwarding addresses, assistants
    return Direction.INBOUND


def _outbound_to_event(event: OutboundEmailEvent, account_email: str) -> ConversationEvent:
    if event.message_id:
        key = message_key(event.message_id)
    else:
        key = composite_key(EventSource.SEND_LOG.value, event.recipient, event.sent_at)
    return ConversationEvent(
        contact_email=event.recipient,
        direction=Direction.OUTBOUND,
        timestamp=event.sent_at,
        subject=event.subject or "No Subject",
        source=EventSource.SEND_LOG,
        dedup_key=key,
        body=event.body,
        message_id=event.message_id,
        thread_id=event.thread_id,
        sender=account_email,
        recipient=event.recipient,
    )


def _followup_to_event(event: FollowUpEmailEvent, account_email: str) -> ConversationEvent:
    subject = event.subject or f"Follow-up Email (#{event.sequence})"
    return ConversationEvent(
        contact_email=event.recipient,
        direction=Direction.FOLLOWUP,
        timestamp=event.sent_at,
        subject=subject,
        source=EventSource.FOLLOWUP_LOG,
        dedup_key=composite_key(EventSource.FOLLOWUP_LOG.value, event.recipient, event.sent_at),
        body=event.body,
        sender=account_email,
        recipient=event.recipient,
        sequence=event.sequence,
    )


def _retrieved_to_event(
    message: RetrievedMessage,
    account_email: str,
    contact_email: str,
) -> ConversationEvent:
    direction = classify_direction(message.sender, account_email, contact_email)
    if message.message_id:
        key = message_key(message.message_id)
    else:
        key = composite_key(EventSource.GATEWAY.value, message.sender or contact_email, message.date)
    return ConversationEvent(
        contact_email=contact_email,
        direction=direction,
        timestamp=message.date,
        subject=message.subject or "No Subject",
        source=EventSource.GATEWAY,
        dedup_key=key,
        body=message.body,
        message_id=message.message_id,
        thread_id=message.thread_id or message.message_id,
        sender=message.sender or None,
        recipient=message.recipient or None,
    )


def merge_events(
    log_events: list[ConversationEvent],
    gateway_events: list[ConversationEvent],
) -> list[ConversationEvent]:
    """Merge log-derived and retrieved events, dedup, and order by timestamp.

    Message-id collisions resolve to the retrieved event; remaining duplicates
    collapse on dedup key, first seen wins. The sort is stable, so equal
    timestamps keep ingestion order.
    """
    retrieved_ids = {e.message_id for e in gateway_events if e.message_id}

    merged: list[ConversationEvent] = []
    seen: set[str] = set()
    for event in log_events:
        if event.message_id and event.message_id in retrieved_ids:
            continue
        if event.dedup_key in seen:
            continue
        seen.add(event.dedup_key)
        merged.append(event)

    for event in gateway_events:
        if event.dedup_key in seen:
            continue
        seen.add(event.dedup_key)
        merged.append(event)

    merged.sort(key=lambda e: e.timestamp)
    return merged


class ConversationReconciler:
    """Builds the conversation view for one contact from logs plus the gateway."""

    def __init__(
        self,
        send_log: SendLogStore | None,
        followup_log: FollowUpLogStore | None,
        gateway: MessageRetrievalGateway | None = None,
        guard: TimeoutGuard | None = None,
        account_email: str | None = None,
    ):
        self.send_log = send_log
        self.followup_log = followup_log
        self.gateway = gateway
        self.guard = guard or TimeoutGuard()
        self.account_email = account_email or getattr(gateway, "user_email", None)

    def _fetch_retrieved(self, account_id: str, contact_email: str) -> tuple[list[RetrievedMessage], bool]:
        if self.gateway is None:
            return [], True
        try:
            rows = self.guard.fetch(self.gateway, account_id, contact_email)
        except SourceUnavailable as e:
            logger.warning("%s for %s; showing logged events only", e, contact_email)
            return [], False
        except Exception as e:  # gateway is remote; no failure may reach the caller
            logger.warning(
                "Gateway failed for %s (%s: %s); showing logged events only",
                contact_email, type(e).__name__, e,
            )
            return [], False
        return retrieved_messages(rows), True

    def collect(
        self,
        account_id: str,
        contact_email: str,
        account_email: str | None = None,
    ) -> ConversationSources:
        """Load and merge every source for the pair.

        ``account_email`` is the sender identity used to classify retrieved
        messages. It defaults to the mailbox the gateway reads, then to the
        account id, which is the sender address. A blank contact names no
        conversation and reads nothing.
        """
        contact = normalize_email(contact_email)
        identity = normalize_email(account_email or self.account_email or account_id)
        sources = ConversationSources(account_id=account_id, contact_email=contact)
        if not contact:
            logger.debug("No contact given for %s; empty conversation", account_id)
            return sources

        sources.outbound = outbound_events(
            read_source(self.send_log, account_id, "send log"), account_id, contact,
        )
        sources.followups = followup_events(
            read_source(self.followup_log, account_id, "follow-up log"), account_id, contact,
        )
        sources.retrieved, sources.gateway_ok = self._fetch_retrieved(account_id, contact)

        log_events = [_outbound_to_event(e, identity) for e in sources.outbound]
        log_events += [_followup_to_event(e, identity) for e in sources.followups]
        gateway_events = [_retrieved_to_event(m, identity, contact) for m in sources.retrieved]

        sources.events = merge_events(log_events, gateway_events)
        logger.debug(
            "Conversation %s/%s: %d logged, %d retrieved, %d merged",
            account_id, contact, len(log_events), len(gateway_events), len(sources.events),
        )
        return sources

    def get_conversation(
        self,
        account_id: str,
        contact_email: str,
        account_email: str | None = None,
    ) -> list[ConversationEvent]:
        """Ordered, deduplicated conversation events for a contact."""
        return self.collect(account_id, contact_email, account_email).events

    def search_conversation(
        self,
        account_id: str,
        contact_email: str,
        keyword: str,
        account_email: str | None = None,
    ) -> list[ConversationEvent]:
        """Conversation events whose subject or body contains ``keyword`` (case-insensitive)."""
        needle = keyword.strip().lower()
        events = self.get_conversation(account_id, contact_email, account_email)
        if not needle:
            return events
        return [
            e for e in events
            if needle in (e.subject or "").lower() or needle in (e.body or "").lower()
        ]
