"""Shared test fixtures."""

from __future__ import annotations

import sqlite3
import time
from datetime import datetime, timedelta, timezone

import pytest

from replyline.database import init_db
from replyline.errors import SourceUnavailable
from replyline.models import Contact

ACCOUNT = "me@jobseeker.io"
T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def at(hours: float = 0, seconds: float = 0) -> datetime:
    """T0 shifted by the given offset."""
    return T0 + timedelta(hours=hours, seconds=seconds)


class FakeLog:
    """In-memory log store; ``fail`` makes every read raise."""

    def __init__(self, rows=None, fail: Exception | None = None):
        self.rows = list(rows or [])
        self.fail = fail
        self.calls = 0

    def list_by_account(self, account_id):
        self.calls += 1
        if self.fail is not None:
            raise self.fail
        return [r for r in self.rows if r.get("user_id", ACCOUNT) == account_id]


class FakeDirectory:
    def __init__(self, contacts=None):
        self.contacts = {c.email: c for c in (contacts or [])}

    def lookup_by_email(self, email):
        return self.contacts.get(email)

    def lookup_by_id(self, contact_id):
        for contact in self.contacts.values():
            if contact.id == contact_id:
                return contact
        return None


class FakeGateway:
    """Returns canned messages, raises ``error``, or sleeps ``delay`` seconds first."""

    def __init__(self, messages=None, error: Exception | None = None, delay: float = 0.0, user_email=None):
        self.messages = list(messages or [])
        self.user_email = user_email
        self.error = error
        self.delay = delay
        self.calls = []

    def fetch_thread(self, account_id, contact_email):
        self.calls.append((account_id, contact_email))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.messages)


def send_row(to, sent_at, subject="Application: Backend Engineer", message_id=None, **extra):
    row = {"user_id": ACCOUNT, "to": to, "subject": subject,
           "sent_at": sent_at.isoformat() if isinstance(sent_at, datetime) else sent_at}
    if message_id:
        row["messageId"] = message_id
    row.update(extra)
    return row


def followup_row(to, sent_at, count=1, subject="Following up", **extra):
    row = {"user_id": ACCOUNT, "to": to, "subject": subject, "followup_count": count,
           "sent_at": sent_at.isoformat() if isinstance(sent_at, datetime) else sent_at}
    row.update(extra)
    return row


def gateway_msg(message_id, sender, to, date, subject="Re: Application", body="Thanks for reaching out"):
    return {
        "message_id": message_id,
        "thread_id": "thread-1",
        "from": sender,
        "to": to,
        "subject": subject,
        "body": body,
        "date": date.isoformat() if isinstance(date, datetime) else date,
    }


@pytest.fixture
def db():
    """In-memory SQLite database with schema initialized."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def directory():
    return FakeDirectory([
        Contact(id="c-1", name="Ana Reyes", email="ana@acme.com", company="Acme", title="Recruiter"),
        Contact(id="c-2", name="Bo Lin", email="bo@globex.com", company="Globex", title="Hiring Manager"),
    ])


@pytest.fixture
def unavailable():
    return SourceUnavailable("test store", "connection refused")
