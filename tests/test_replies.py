"""Tests for the reply-log field adapter."""

from __future__ import annotations

import pytest

from replyline.engine.replies import ReplyFieldAdapter, is_replied
from replyline.errors import SchemaMismatch
from tests.conftest import ACCOUNT, FakeLog


def test_reads_each_row_through_its_own_generation():
    rows = [
        {"user_id": ACCOUNT, "to": "legacy@x.com", "contact_email": None},
        {"user_id": ACCOUNT, "to": None, "contact_email": "current@x.com"},
    ]
    adapter = ReplyFieldAdapter()
    assert adapter.replied_set(FakeLog(rows), ACCOUNT) == {"legacy@x.com", "current@x.com"}
    assert adapter.fields_seen(ACCOUNT) == {"to", "contact_email"}


def test_priority_order_within_a_row():
    adapter = ReplyFieldAdapter()
    row = {"contact_email": "First@X.com", "to": "second@x.com", "email": "third@x.com"}
    assert adapter.resolve_row(row) == ("contact_email", "first@x.com")
    assert adapter.resolve_row({"contact_email": "  ", "to": "second@x.com"}) == ("to", "second@x.com")


def test_falls_through_to_legacy_field():
    adapter = ReplyFieldAdapter()
    rows = [{"user_id": ACCOUNT, "recipient_email": "Old@X.com"}]
    assert adapter.replied_set(FakeLog(rows), ACCOUNT) == {"old@x.com"}
    assert adapter.fields_seen(ACCOUNT) == {"recipient_email"}


def test_result_does_not_depend_on_call_history():
    store = FakeLog([{"user_id": ACCOUNT, "email": "a@x.com"}])
    used = ReplyFieldAdapter()
    used.replied_set(store, ACCOUNT)

    store.rows = [{"user_id": ACCOUNT, "contact_email": "b@x.com"}]
    assert used.replied_set(store, ACCOUNT) == ReplyFieldAdapter().replied_set(store, ACCOUNT) == {"b@x.com"}


def test_new_generation_rows_are_read_alongside_old_ones():
    adapter = ReplyFieldAdapter()
    store = FakeLog([{"user_id": ACCOUNT, "email": "a@x.com"}])
    adapter.replied_set(store, ACCOUNT)

    store.rows.append({"user_id": ACCOUNT, "contact_email": "b@x.com"})
    assert adapter.replied_set(store, ACCOUNT) == {"a@x.com", "b@x.com"}


def test_fields_seen_is_per_account():
    adapter = ReplyFieldAdapter()
    store = FakeLog([
        {"user_id": "one@x.com", "to": "a@x.com"},
        {"user_id": "two@x.com", "contact_email": "b@x.com"},
    ])
    adapter.replied_set(store, "one@x.com")
    adapter.replied_set(store, "two@x.com")
    assert adapter.fields_seen("one@x.com") == {"to"}
    assert adapter.fields_seen("two@x.com") == {"contact_email"}


def test_no_candidate_resolves_raises_schema_mismatch():
    adapter = ReplyFieldAdapter()
    with pytest.raises(SchemaMismatch):
        adapter.resolve_rows(ACCOUNT, [{"contact": "a@x.com"}])


def test_schema_mismatch_means_no_repliers():
    adapter = ReplyFieldAdapter()
    store = FakeLog([{"user_id": ACCOUNT, "contact": "a@x.com"}])
    assert adapter.replied_set(store, ACCOUNT) == set()
    assert adapter.fields_seen(ACCOUNT) == set()


def test_false_flag_on_legacy_row():
    adapter = ReplyFieldAdapter()
    store = FakeLog([
        {"user_id": ACCOUNT, "to": "a@x.com", "replied": 0},
        {"user_id": ACCOUNT, "contact_email": "b@x.com", "replied": 1},
    ])
    assert adapter.replied_set(store, ACCOUNT) == {"b@x.com"}


def test_store_failure_means_no_repliers(unavailable):
    adapter = ReplyFieldAdapter()
    assert adapter.replied_set(FakeLog(fail=unavailable), ACCOUNT) == set()


def test_custom_candidates():
    adapter = ReplyFieldAdapter(candidates=["prospect"], flag_field="has_reply")
    store = FakeLog([
        {"user_id": ACCOUNT, "prospect": "a@x.com", "has_reply": "yes"},
        {"user_id": ACCOUNT, "prospect": "b@x.com", "has_reply": "no"},
    ])
    assert adapter.replied_set(store, ACCOUNT) == {"a@x.com"}


@pytest.mark.parametrize("value,expected", [
    (None, True), (True, True), (False, False), (1, True), (0, False),
    ("true", True), ("TRUE", True), ("t", True), ("false", False), ("0", False), ("", False),
])
def test_is_replied(value, expected):
    assert is_replied(value) is expected
