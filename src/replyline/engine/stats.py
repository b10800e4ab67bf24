"""Per-contact conversation statistics."""

from __future__ import annotations

from replyline.engine.reconcile import ConversationReconciler, ConversationSources
from replyline.models import ConversationStats, Direction


def compute_stats(sources: ConversationSources) -> ConversationStats:
    """Derive counts and bounds from loaded sources.

    Outbound counts come from the logs: one per send-log row plus each
    follow-up row's recorded sequence. Inbound counts come from retrieved
    messages only, since the logs never record replies.
    """
    outbound = len(sources.outbound) + sum(f.sequence for f in sources.followups)
    inbound_events = [e for e in sources.events if e.direction is Direction.INBOUND]
    inbound = len(inbound_events)

    timestamps = [e.sent_at for e in sources.outbound]
    timestamps += [f.sent_at for f in sources.followups]
    timestamps += [e.timestamp for e in inbound_events]

    if not timestamps:
        return ConversationStats()

    return ConversationStats(
        total=outbound + inbound,
        outbound=outbound,
        inbound=inbound,
        first_at=min(timestamps),
        last_at=max(timestamps),
    )


class ConversationStatsAggregator:
    def __init__(self, reconciler: ConversationReconciler):
        self.reconciler = reconciler

    def get_conversation_stats(
        self,
        account_id: str,
        contact_email: str,
        account_email: str | None = None,
    ) -> ConversationStats:
        sources = self.reconciler.collect(account_id, contact_email, account_email)
        return compute_stats(sources)
