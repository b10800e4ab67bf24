"""Tests for the thread-retrieval gateways and the timeout guard."""

from __future__ import annotations

import base64
import time
from unittest.mock import MagicMock, patch

import httpx
import pytest
from googleapiclient.errors import HttpError

from replyline.config import Config, GmailConfig
from replyline.errors import SourceUnavailable
from replyline.gateway import get_gateway
from replyline.gateway.auth import get_user_email, load_credentials
from replyline.gateway.gmail import GmailThreadGateway
from replyline.gateway.guard import TimeoutGuard
from replyline.gateway.http import HttpThreadGateway, normalize_response
from tests.conftest import ACCOUNT, FakeGateway


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode()


class TestNormalizeResponse:
    def test_wrapped_list_with_camel_case(self):
        data = {"messages": [{
            "messageId": "m-1", "threadId": "t-1", "sender": "ana@acme.com",
            "recipient": ACCOUNT, "Subject": "Re: hi", "content": "Sure", "sent_at": "2024-03-01T09:00:00Z",
        }]}
        assert normalize_response(data) == [{
            "message_id": "m-1", "thread_id": "t-1", "from": "ana@acme.com", "to": ACCOUNT,
            "subject": "Re: hi", "body": "Sure", "date": "2024-03-01T09:00:00Z",
        }]

    def test_bare_list(self):
        assert [m["message_id"] for m in normalize_response([{"id": "a"}, {"id": "b"}])] == ["a", "b"]

    def test_single_message(self):
        assert normalize_response({"id": "a", "from": "x@y.com"})[0]["from"] == "x@y.com"

    def test_empty_and_junk(self):
        assert normalize_response({}) == []
        assert normalize_response(None) == []
        assert normalize_response({"emails": ["junk", {"id": "ok"}]})[0]["message_id"] == "ok"


class TestHttpThreadGateway:
    def _mock_client(self, mock_cls, data=None, post_error=None):
        client = mock_cls.return_value.__enter__.return_value
        if post_error is not None:
            client.post.side_effect = post_error
        else:
            resp = MagicMock()
            resp.json.return_value = data
            client.post.return_value = resp
        return client

    @patch("replyline.gateway.http.httpx.Client")
    def test_posts_sender_and_recipient(self, mock_cls):
        client = self._mock_client(mock_cls, data={"messages": [{"id": "m-1"}]})
        gateway = HttpThreadGateway(base_url="http://mail.local/", endpoint="get_email_and_replies")

        messages = gateway.fetch_thread(ACCOUNT, "ana@acme.com")

        client.post.assert_called_once_with(
            "http://mail.local/get_email_and_replies",
            json={"sender": ACCOUNT, "to": "ana@acme.com"},
        )
        assert messages[0]["message_id"] == "m-1"

    @patch("replyline.gateway.http.time.sleep")
    @patch("replyline.gateway.http.httpx.Client")
    def test_connect_error_retries_then_raises(self, mock_cls, mock_sleep):
        client = self._mock_client(mock_cls, post_error=httpx.ConnectError("refused"))
        gateway = HttpThreadGateway(max_retries=3)

        with pytest.raises(SourceUnavailable):
            gateway.fetch_thread(ACCOUNT, "ana@acme.com")
        assert client.post.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("replyline.gateway.http.httpx.Client")
    def test_http_status_error_raises(self, mock_cls):
        client = self._mock_client(mock_cls, data={})
        request = httpx.Request("POST", "http://localhost:8000/get_email_and_replies")
        response = httpx.Response(500, request=request)
        client.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
            "server error", request=request, response=response,
        )
        with pytest.raises(SourceUnavailable):
            HttpThreadGateway().fetch_thread(ACCOUNT, "ana@acme.com")

    @patch("replyline.gateway.http.httpx.Client")
    def test_invalid_json_raises(self, mock_cls):
        client = self._mock_client(mock_cls)
        client.post.return_value.json.side_effect = ValueError("not json")
        with pytest.raises(SourceUnavailable):
            HttpThreadGateway().fetch_thread(ACCOUNT, "ana@acme.com")


class TestGmailThreadGateway:
    RAW = {
        "id": "m-1",
        "threadId": "t-1",
        "internalDate": "1709283600000",
        "snippet": "snip",
        "payload": {
            "headers": [
                {"name": "From", "value": "Ana Reyes <Ana@Acme.com>"},
                {"name": "To", "value": ACCOUNT},
                {"name": "Subject", "value": "Re: Application"},
            ],
            "parts": [
                {"mimeType": "text/html", "body": {"data": _b64("<p>Hi</p>")}},
                {"mimeType": "text/plain", "body": {"data": _b64("Hi there")}},
                {"mimeType": "application/pdf", "filename": "cv.pdf", "body": {"attachmentId": "x"}},
            ],
        },
    }

    def test_parse_message(self):
        gateway = GmailThreadGateway(MagicMock(), ACCOUNT)
        row = gateway.parse_message(self.RAW)
        assert row == {
            "message_id": "m-1",
            "thread_id": "t-1",
            "from": "ana@acme.com",
            "to": ACCOUNT,
            "subject": "Re: Application",
            "body": "Hi there",
            "date": "1709283600000",
        }

    def test_parse_message_falls_back_to_snippet_and_date_header(self):
        raw = {"id": "m-2", "snippet": "short", "payload": {"headers": [
            {"name": "Date", "value": "Fri, 01 Mar 2024 09:00:00 +0000"},
        ]}}
        row = GmailThreadGateway(MagicMock(), ACCOUNT).parse_message(raw)
        assert row["body"] == "short"
        assert row["date"] == "Fri, 01 Mar 2024 09:00:00 +0000"

    def test_fetch_thread_queries_both_directions(self):
        service = MagicMock()
        messages = service.users.return_value.messages.return_value
        messages.list.return_value.execute.return_value = {"messages": [{"id": "m-1"}]}
        messages.get.return_value.execute.return_value = self.RAW

        rows = GmailThreadGateway(service, ACCOUNT).fetch_thread(ACCOUNT, "ana@acme.com")

        assert [r["message_id"] for r in rows] == ["m-1"]
        _, kwargs = messages.list.call_args
        assert kwargs["q"] == "from:ana@acme.com OR to:ana@acme.com"

    def test_http_error_becomes_source_unavailable(self):
        service = MagicMock()
        messages = service.users.return_value.messages.return_value
        messages.list.return_value.execute.side_effect = HttpError(MagicMock(status=403), b"forbidden")

        with pytest.raises(SourceUnavailable):
            GmailThreadGateway(service, ACCOUNT).fetch_thread(ACCOUNT, "ana@acme.com")


class TestTimeoutGuard:
    def test_returns_result(self):
        guard = TimeoutGuard(timeout=1.0)
        try:
            assert guard.fetch(FakeGateway([{"message_id": "m-1"}]), ACCOUNT, "a@x.com") == [{"message_id": "m-1"}]
        finally:
            guard.shutdown()

    def test_overrun_raises_source_unavailable(self):
        guard = TimeoutGuard(timeout=0.05, max_workers=1)
        start = time.monotonic()
        try:
            with pytest.raises(SourceUnavailable):
                guard.fetch(FakeGateway(delay=0.5), ACCOUNT, "a@x.com")
        finally:
            guard.shutdown()
        assert time.monotonic() - start < 0.45

    def test_gateway_error_propagates(self):
        guard = TimeoutGuard(timeout=1.0)
        try:
            with pytest.raises(RuntimeError):
                guard.fetch(FakeGateway(error=RuntimeError("boom")), ACCOUNT, "a@x.com")
        finally:
            guard.shutdown()


class TestGetGateway:
    def test_none(self):
        assert get_gateway(Config()) is None

    def test_http(self):
        config = Config()
        config.gateway.provider = "http"
        config.gateway.api_base_url = "http://mail.local"
        gateway = get_gateway(config)
        assert isinstance(gateway, HttpThreadGateway)
        assert gateway.base_url == "http://mail.local"

    def test_unknown(self):
        config = Config()
        config.gateway.provider = "carrier-pigeon"
        with pytest.raises(ValueError):
            get_gateway(config)


class TestGmailAuth:
    def test_missing_client_file_raises(self, tmp_path):
        gmail = GmailConfig(
            credentials_file=str(tmp_path / "credentials.json"),
            token_file=str(tmp_path / "token.json"),
        )
        with pytest.raises(FileNotFoundError):
            load_credentials(gmail)

    def test_get_user_email(self):
        service = MagicMock()
        service.users.return_value.getProfile.return_value.execute.return_value = {"emailAddress": ACCOUNT}
        assert get_user_email(service) == ACCOUNT
