"""Dataclasses for collaborator rows and the engine's derived views."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum


class Direction(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"
    FOLLOWUP = "follow_up"


class EventSource(str, Enum):
    SEND_LOG = "send_log"
    FOLLOWUP_LOG = "followup_log"
    GATEWAY = "gateway"


@dataclass(frozen=True)
class Contact:
    id: str
    name: str
    email: str
    company: str | None = None
    title: str | None = None
    synthesized: bool = False


@dataclass(frozen=True)
class OutboundEmailEvent:
    account_id: str
    recipient: str
    subject: str
    sent_at: datetime
    message_id: str | None = None
    thread_id: str | None = None
    body: str | None = None


@dataclass(frozen=True)
class FollowUpEmailEvent:
    account_id: str
    recipient: str
    subject: str
    sent_at: datetime
    sequence: int = 1
    body: str | None = None


@dataclass(frozen=True)
class ReplyRecord:
    account_id: str
    contact_email: str
    replied: bool = True


@dataclass(frozen=True)
class RetrievedMessage:
    message_id: str | None
    thread_id: str | None
    sender: str
    recipient: str
    subject: str
    body: str
    date: datetime


@dataclass(frozen=True)
class ConversationEvent:
    contact_email: str
    direction: Direction
    timestamp: datetime
    subject: str
    source: EventSource
    dedup_key: str
    body: str | None = None
    message_id: str | None = None
    thread_id: str | None = None
    sender: str | None = None
    recipient: str | None = None
    sequence: int = 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = self.direction.value
        data["source"] = self.source.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class ContactSummary:
    contact: Contact
    last_communication_at: datetime | None
    total_event_count: int = 0
    replied: bool = False
    eligible_for_followup: bool = False

    @property
    def email(self) -> str:
        return self.contact.email

    def to_dict(self) -> dict:
        return {
            "id": self.contact.id,
            "name": self.contact.name,
            "email": self.contact.email,
            "company": self.contact.company,
            "title": self.contact.title,
            "last_communication_at": (
                self.last_communication_at.isoformat() if self.last_communication_at else None
            ),
            "total_event_count": self.total_event_count,
            "replied": self.replied,
            "eligible_for_followup": self.eligible_for_followup,
        }


# The follow-up queue hands out the same projection under its domain name.
FollowUpCandidate = ContactSummary


@dataclass(frozen=True)
class ConversationStats:
    total: int = 0
    outbound: int = 0
    inbound: int = 0
    first_at: datetime | None = None
    last_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "outbound": self.outbound,
            "inbound": self.inbound,
            "first_at": self.first_at.isoformat() if self.first_at else None,
            "last_at": self.last_at.isoformat() if self.last_at else None,
        }
