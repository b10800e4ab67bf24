"""HTTP thread-retrieval gateway, a client for the mail backend's conversation endpoint."""

from __future__ import annotations

import logging
import time

import httpx

from replyline.errors import SourceUnavailable

logger = logging.getLogger(__name__)

# The backend has shipped several response shapes; each field is read from the
# first alias present.
_FIELD_ALIASES = {
    "message_id": ("id", "messageId", "message_id"),
    "thread_id": ("threadId", "thread_id"),
    "from": ("from", "From", "sender", "sender_email"),
    "to": ("to", "To", "recipient", "recipient_email"),
    "subject": ("subject", "Subject"),
    "body": ("body", "Body", "content", "snippet"),
    "date": ("date", "Date", "sent_at", "internalDate"),
}

_LIST_KEYS = ("messages", "emails", "conversation")


def _pick(item: dict, aliases: tuple[str, ...]):
    for key in aliases:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_response(data) -> list[dict]:
    """Flatten any known response shape into a list of message dicts."""
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = None
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                items = data[key]
                break
        if items is None:
            # Single message response
            items = [data] if data else []
    else:
        return []

    messages = []
    for item in items:
        if not isinstance(item, dict):
            continue
        messages.append({field: _pick(item, aliases) for field, aliases in _FIELD_ALIASES.items()})
    return messages


class HttpThreadGateway:
    """POSTs {sender, to} to the backend and returns the thread it reports."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        endpoint: str = "/get_email_and_replies",
        timeout: float = 10.0,
        max_retries: int = 2,
    ):
        self.base_url = base_url.rstrip("/")
        self.endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

    def fetch_thread(self, account_id: str, contact_email: str) -> list[dict]:
        payload = {"sender": account_id, "to": contact_email}
        url = f"{self.base_url}{self.endpoint}"

        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(url, json=payload)
                    resp.raise_for_status()
                data = resp.json()
                break
            except httpx.ConnectError as e:
                if attempt < self.max_retries - 1:
                    time.sleep(0.5 * (2 ** attempt))
                    continue
                raise SourceUnavailable("gateway", f"cannot reach {self.base_url}: {e}") from e
            except httpx.HTTPError as e:
                raise SourceUnavailable("gateway", str(e)) from e
            except ValueError as e:
                raise SourceUnavailable("gateway", f"invalid JSON from {url}") from e

        messages = normalize_response(data)
        logger.debug("Gateway returned %d messages for %s", len(messages), contact_email)
        return messages
