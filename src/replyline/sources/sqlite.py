"""SQLite-backed collaborator stores.

These read the tables the sending side writes (see schema.sql). Rows are
returned as plain dicts with the writer's own column names; interpreting
them is the engine's job.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from replyline.errors import SourceUnavailable
from replyline.models import Contact
from replyline.normalize import normalize_email


def _fetch_rows(db: sqlite3.Connection, source: str, sql: str, params: tuple) -> list[dict]:
    try:
        rows = db.execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise SourceUnavailable(source, str(exc)) from exc
    return [dict(row) for row in rows]


def _row_to_contact(row) -> Contact:
    return Contact(
        id=str(row["id"]),
        name=row["name"] or normalize_email(row["email"]).split("@")[0],
        email=normalize_email(row["email"]),
        company=row["company"],
        title=row["title"],
    )


class SqliteContactDirectory:
    """Contact lookups against the ``contacts`` table."""

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def lookup_by_email(self, email: str) -> Contact | None:
        try:
            row = self.db.execute(
                "SELECT * FROM contacts WHERE lower(trim(email)) = ? LIMIT 1",
                (normalize_email(email),),
            ).fetchone()
        except sqlite3.Error as exc:
            raise SourceUnavailable("contacts", str(exc)) from exc
        return _row_to_contact(row) if row else None

    def lookup_by_id(self, contact_id: str) -> Contact | None:
        try:
            row = self.db.execute(
                "SELECT * FROM contacts WHERE id = ?", (contact_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise SourceUnavailable("contacts", str(exc)) from exc
        return _row_to_contact(row) if row else None


class SqliteSendLog:
    """Initial outbound sends from ``useremaillog``."""

    source = "useremaillog"

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def list_by_account(self, account_id: str) -> list[dict]:
        return _fetch_rows(
            self.db, self.source,
            "SELECT * FROM useremaillog WHERE lower(user_id) = lower(?) ORDER BY id",
            (account_id,),
        )


class SqliteFollowUpLog:
    """Follow-up sends from ``followuplogs``."""

    source = "followuplogs"

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def list_by_account(self, account_id: str) -> list[dict]:
        return _fetch_rows(
            self.db, self.source,
            "SELECT * FROM followuplogs WHERE lower(user_id) = lower(?) ORDER BY id",
            (account_id,),
        )


class SqliteReplyLog:
    """Reply signals from ``reply_log``."""

    source = "reply_log"

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def list_by_account(self, account_id: str) -> list[dict]:
        return _fetch_rows(
            self.db, self.source,
            "SELECT * FROM reply_log WHERE lower(user_id) = lower(?) ORDER BY id",
            (account_id,),
        )


# --- Writers used to seed the tables (the sending side owns these in production) ---

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def add_contact(
    db: sqlite3.Connection,
    contact_id: str,
    email: str,
    name: str | None = None,
    company: str | None = None,
    title: str | None = None,
) -> None:
    db.execute(
        "INSERT OR REPLACE INTO contacts (id, name, email, company, title) VALUES (?, ?, ?, ?, ?)",
        (contact_id, name, email, company, title),
    )
    db.commit()


def append_send(
    db: sqlite3.Connection,
    account_id: str,
    to: str,
    subject: str = "",
    sent_at: str | None = None,
    message_id: str | None = None,
    thread_id: str | None = None,
    body: str | None = None,
) -> None:
    db.execute(
        """INSERT INTO useremaillog (user_id, "to", subject, body, sent_at, messageId, threadId)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (account_id, to, subject, body, sent_at or _now_iso(), message_id, thread_id),
    )
    db.commit()


def append_followup(
    db: sqlite3.Connection,
    account_id: str,
    to: str,
    subject: str = "",
    sent_at: str | None = None,
    followup_count: int = 1,
    body: str | None = None,
) -> None:
    db.execute(
        """INSERT INTO followuplogs (user_id, "to", subject, body, sent_at, followup_count)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (account_id, to, subject, body, sent_at or _now_iso(), followup_count),
    )
    db.commit()


def append_reply(
    db: sqlite3.Connection,
    account_id: str,
    address: str,
    field: str = "contact_email",
    replied: bool = True,
) -> None:
    if field not in ("contact_email", "to", "recipient_email", "email"):
        raise ValueError(f"Unknown reply field: {field!r}")
    db.execute(
        f'INSERT INTO reply_log (user_id, "{field}", replied) VALUES (?, ?, ?)',
        (account_id, address, replied),
    )
    db.commit()
