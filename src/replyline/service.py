"""ConversationService, the engine's outward face.

Wires the collaborators into the reconciler, eligibility engine and stats
aggregator, and resolves the contact references a dashboard hands in
(directory ids, synthesized ``email-<address>`` ids, or bare addresses).
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from replyline.config import Config
from replyline.engine.followup import FollowUpEligibilityEngine
from replyline.engine.reconcile import ConversationReconciler
from replyline.engine.replies import ReplyFieldAdapter
from replyline.engine.stats import ConversationStatsAggregator
from replyline.gateway.guard import TimeoutGuard
from replyline.models import ContactSummary, ConversationEvent, ConversationStats
from replyline.normalize import SYNTHETIC_ID_PREFIX, normalize_email
from replyline.sources.base import (
    ContactDirectory,
    FollowUpLogStore,
    MessageRetrievalGateway,
    ReplyLogStore,
    SendLogStore,
)

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        send_log: SendLogStore | None,
        followup_log: FollowUpLogStore | None,
        reply_log: ReplyLogStore | None,
        directory: ContactDirectory | None = None,
        gateway: MessageRetrievalGateway | None = None,
        reply_adapter: ReplyFieldAdapter | None = None,
        guard: TimeoutGuard | None = None,
    ):
        self.directory = directory
        self.reconciler = ConversationReconciler(send_log, followup_log, gateway, guard=guard)
        self.eligibility = FollowUpEligibilityEngine(
            send_log, followup_log, reply_log, directory, reply_adapter=reply_adapter,
        )
        self.stats = ConversationStatsAggregator(self.reconciler)

    def get_conversation(self, account_id: str, contact_email: str) -> list[ConversationEvent]:
        return self.reconciler.get_conversation(account_id, contact_email)

    def search_conversation(self, account_id: str, contact_email: str, keyword: str) -> list[ConversationEvent]:
        return self.reconciler.search_conversation(account_id, contact_email, keyword)

    def get_follow_up_queue(self, account_id: str, now: datetime | None = None) -> list[ContactSummary]:
        return self.eligibility.get_follow_up_queue(account_id, now)

    def get_conversation_stats(self, account_id: str, contact_email: str) -> ConversationStats:
        return self.stats.get_conversation_stats(account_id, contact_email)

    def list_conversation_contacts(self, account_id: str) -> list[ContactSummary]:
        return self.eligibility.list_conversation_contacts(account_id)

    def resolve_contact_email(self, reference: str) -> str | None:
        """Map a dashboard contact reference to a normalized address.

        Returns None when the reference is a directory id the directory
        cannot resolve.
        """
        reference = reference.strip()
        if reference.startswith(SYNTHETIC_ID_PREFIX) and "@" in reference:
            return normalize_email(reference[len(SYNTHETIC_ID_PREFIX):])
        if "@" in reference:
            return normalize_email(reference)

        lookup = getattr(self.directory, "lookup_by_id", None)
        if lookup is None:
            return None
        try:
            contact = lookup(reference)
        except Exception as e:  # directory outage reads as "unknown reference"
            logger.warning("Contact directory lookup failed for id %s: %s", reference, e)
            return None
        return contact.email if contact else None


def reply_adapter_for(config: Config) -> ReplyFieldAdapter:
    return ReplyFieldAdapter(config.replies.field_candidates, config.replies.flag_field)


def guard_for(config: Config) -> TimeoutGuard:
    return TimeoutGuard(config.gateway.timeout_seconds, config.gateway.max_workers)


def build_service(
    config: Config,
    db: sqlite3.Connection,
    gateway: MessageRetrievalGateway | None = None,
    reply_adapter: ReplyFieldAdapter | None = None,
    guard: TimeoutGuard | None = None,
) -> ConversationService:
    """Service over the SQLite stores.

    The gateway, reply adapter and guard are built from config unless given;
    long-lived hosts such as the web app build them once and pass them in.
    """
    from replyline.sources.sqlite import (
        SqliteContactDirectory,
        SqliteFollowUpLog,
        SqliteReplyLog,
        SqliteSendLog,
    )

    if gateway is None:
        from replyline.gateway import get_gateway
        gateway = get_gateway(config)

    return ConversationService(
        send_log=SqliteSendLog(db),
        followup_log=SqliteFollowUpLog(db),
        reply_log=SqliteReplyLog(db),
        directory=SqliteContactDirectory(db),
        gateway=gateway,
        reply_adapter=reply_adapter or reply_adapter_for(config),
        guard=guard or guard_for(config),
    )
