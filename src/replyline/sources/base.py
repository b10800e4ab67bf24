"""Collaborator protocols consumed by the engine."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from replyline.models import Contact

Row = Mapping[str, Any]


@runtime_checkable
class ContactDirectory(Protocol):
    """Identity lookup by email."""

    def lookup_by_email(self, email: str) -> Contact | None:
        """Return the contact for a normalized address, or None if unknown."""
        ...


@runtime_checkable
class SendLogStore(Protocol):
    """Append-only log of initial outbound emails."""

    def list_by_account(self, account_id: str) -> Sequence[Row]:
        """Rows carry recipient, subject, sent_at and optional message/thread ids."""
        ...


@runtime_checkable
class FollowUpLogStore(Protocol):
    """Append-only log of follow-up sends."""

    def list_by_account(self, account_id: str) -> Sequence[Row]:
        """Rows carry recipient, subject, sent_at and a follow-up sequence count."""
        ...


@runtime_checkable
class ReplyLogStore(Protocol):
    """Append-only log of reply signals.

    The recipient column is named differently depending on which generation of
    writer produced the row; see ``replyline.engine.replies``.
    """

    def list_by_account(self, account_id: str) -> Sequence[Row]:
        ...


@runtime_checkable
class MessageRetrievalGateway(Protocol):
    """Fetches the authoritative thread for an (account, contact) pair."""

    def fetch_thread(self, account_id: str, contact_email: str) -> Sequence[Row]:
        """Return raw messages with message_id, thread_id, from, to, subject, body, date.

        Raises SourceUnavailable (or anything else) on failure; callers guard it.
        """
        ...
