"""Reply-log field adapter.

Reply rows were written by several generations of code and name the contact
column differently (``contact_email``, ``to``, ``recipient_email``,
``email``), and rows from different generations share one table. Each row is
read through the first candidate, in a fixed priority order, that holds an
address on that row. The adapter remembers which generations it has seen per
account for diagnostics only; results never depend on earlier calls.
"""

from __future__ import annotations

import logging
import threading
from typing import Sequence

from replyline.config import DEFAULT_REPLY_FIELDS
from replyline.engine.rows import read_source
from replyline.errors import SchemaMismatch
from replyline.models import ReplyRecord
from replyline.normalize import normalize_email
from replyline.sources.base import ReplyLogStore, Row

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "t", "1", "yes", "y"}


def is_replied(value) -> bool:
    """Interpret a replied flag. A row without a flag is itself the reply signal."""
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def _get(row: Row, field: str):
    try:
        return row[field]
    except (KeyError, IndexError):
        return None


class ReplyFieldAdapter:
    """Reads reply rows whatever generation of writer produced them."""

    def __init__(self, candidates: Sequence[str] | None = None, flag_field: str = "replied"):
        self.candidates = list(candidates or DEFAULT_REPLY_FIELDS)
        self.flag_field = flag_field
        self._seen: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def fields_seen(self, account_id: str) -> set[str]:
        """Contact fields that have carried data for the account so far."""
        with self._lock:
            return set(self._seen.get(account_id, ()))

    def resolve_row(self, row: Row) -> tuple[str, str] | None:
        """(field, address) for the first candidate holding an address on this row."""
        for field in self.candidates:
            address = normalize_email(_get(row, field))
            if address:
                return field, address
        return None

    def resolve_rows(self, account_id: str, rows: Sequence[Row]) -> list[tuple[str, str, Row]]:
        """Resolve every row that names a contact.

        Raises SchemaMismatch when rows exist but none carries any candidate.
        """
        resolved = []
        for row in rows:
            hit = self.resolve_row(row)
            if hit is not None:
                resolved.append((*hit, row))
        if rows and not resolved:
            raise SchemaMismatch("reply log", self.candidates)

        fields = {field for field, _, _ in resolved}
        with self._lock:
            known = self._seen.setdefault(account_id, set())
            new = fields - known
            known |= fields
        if new and len(known) > 1:
            logger.info("Reply log for %s mixes writer fields %s", account_id, sorted(known))
        return resolved

    def records(self, store: ReplyLogStore | None, account_id: str) -> list[ReplyRecord]:
        """Reply records for the account, one per row that names a contact."""
        rows = read_source(store, account_id, "reply log")
        if not rows:
            return []
        try:
            resolved = self.resolve_rows(account_id, rows)
        except SchemaMismatch as e:
            logger.info("%s; treating as no repliers", e)
            return []

        return [
            ReplyRecord(
                account_id=account_id,
                contact_email=address,
                replied=is_replied(_get(row, self.flag_field)),
            )
            for _, address, row in resolved
        ]

    def replied_set(self, store: ReplyLogStore | None, account_id: str) -> set[str]:
        """Normalized addresses of every contact with a true reply record."""
        return {r.contact_email for r in self.records(store, account_id) if r.replied}
