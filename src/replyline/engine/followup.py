"""Follow-up eligibility: who needs a nudge now, from the logs alone.

This path never calls the retrieval gateway: it scans every recipient of an
account and must stay cheap and available when the mail provider is not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from replyline.engine.replies import ReplyFieldAdapter
from replyline.engine.rows import (
    followup_events,
    outbound_events,
    read_source,
    resolve_contact,
)
from replyline.models import ContactSummary, FollowUpEmailEvent, OutboundEmailEvent
from replyline.sources.base import ContactDirectory, FollowUpLogStore, ReplyLogStore, SendLogStore

logger = logging.getLogger(__name__)

GRACE_WINDOW = timedelta(hours=24)


@dataclass
class RecipientActivity:
    """Running per-recipient maxima and counts from one pass over both logs."""

    email: str
    last_outbound: datetime | None = None
    last_followup: datetime | None = None
    outbound_rows: int = 0
    followup_total: int = 0

    @property
    def last_communication(self) -> datetime | None:
        """A follow-up resets the grace-window baseline just as a first send does."""
        candidates = [t for t in (self.last_outbound, self.last_followup) if t is not None]
        return max(candidates) if candidates else None

    @property
    def total_sent(self) -> int:
        return self.outbound_rows + self.followup_total


def accumulate_activity(
    outbound: Iterable[OutboundEmailEvent],
    followups: Iterable[FollowUpEmailEvent],
) -> dict[str, RecipientActivity]:
    """Per-recipient max timestamp of each event type, without sorting."""
    activity: dict[str, RecipientActivity] = {}

    for event in outbound:
        entry = activity.setdefault(event.recipient, RecipientActivity(event.recipient))
        entry.outbound_rows += 1
        if entry.last_outbound is None or event.sent_at > entry.last_outbound:
            entry.last_outbound = event.sent_at

    for event in followups:
        entry = activity.setdefault(event.recipient, RecipientActivity(event.recipient))
        entry.followup_total += event.sequence
        if entry.last_followup is None or event.sent_at > entry.last_followup:
            entry.last_followup = event.sent_at

    return activity


def is_overdue(last_communication: datetime, now: datetime) -> bool:
    """Strictly more than the grace window has elapsed."""
    return now - last_communication > GRACE_WINDOW


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FollowUpEligibilityEngine:
    """Builds the follow-up queue and the per-account contact overview."""

    def __init__(
        self,
        send_log: SendLogStore | None,
        followup_log: FollowUpLogStore | None,
        reply_log: ReplyLogStore | None,
        directory: ContactDirectory | None = None,
        reply_adapter: ReplyFieldAdapter | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.send_log = send_log
        self.followup_log = followup_log
        self.reply_log = reply_log
        self.directory = directory
        self.reply_adapter = reply_adapter or ReplyFieldAdapter()
        self.clock = clock

    def _activity(self, account_id: str) -> dict[str, RecipientActivity]:
        outbound = outbound_events(read_source(self.send_log, account_id, "send log"), account_id)
        followups = followup_events(read_source(self.followup_log, account_id, "follow-up log"), account_id)
        return accumulate_activity(outbound, followups)

    def summarize(self, account_id: str, now: datetime | None = None) -> list[ContactSummary]:
        """Summaries for every recipient with at least one outbound send.

        Replied recipients are included with ``replied=True`` and never marked
        eligible. Follow-up-only recipients are left out: a follow-up presumes
        a first send this account's log should hold.
        """
        now = now or self.clock()
        replied = self.reply_adapter.replied_set(self.reply_log, account_id)

        summaries = []
        for email, entry in self._activity(account_id).items():
            if entry.last_outbound is None:
                continue
            last = entry.last_communication
            has_replied = email in replied
            summaries.append(ContactSummary(
                contact=resolve_contact(self.directory, email),
                last_communication_at=last,
                total_event_count=entry.total_sent,
                replied=has_replied,
                eligible_for_followup=not has_replied and is_overdue(last, now),
            ))
        return summaries

    def get_follow_up_queue(self, account_id: str, now: datetime | None = None) -> list[ContactSummary]:
        """Eligible contacts, most overdue (oldest last communication) first."""
        queue = [s for s in self.summarize(account_id, now) if s.eligible_for_followup]
        queue.sort(key=lambda s: (s.last_communication_at, s.email))
        logger.info("Follow-up queue for %s: %d contacts", account_id, len(queue))
        return queue

    def list_conversation_contacts(self, account_id: str) -> list[ContactSummary]:
        """Every recipient in either log, most recently contacted first.

        Unlike the queue this includes follow-up-only recipients and does not
        consult the reply log.
        """
        contacts = [
            ContactSummary(
                contact=resolve_contact(self.directory, email),
                last_communication_at=entry.last_communication,
                total_event_count=entry.total_sent,
            )
            for email, entry in self._activity(account_id).items()
        ]
        contacts.sort(key=lambda s: s.email)
        contacts.sort(key=lambda s: s.last_communication_at, reverse=True)
        return contacts
