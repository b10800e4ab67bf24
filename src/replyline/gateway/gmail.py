"""Gmail API thread-retrieval gateway: search, fetch and flatten messages."""

from __future__ import annotations

import base64
import email.utils
import logging

from googleapiclient.errors import HttpError

from replyline.errors import SourceUnavailable

logger = logging.getLogger(__name__)


class GmailThreadGateway:
    """Retrieves every message exchanged with a contact from one Gmail mailbox."""

    def __init__(self, service, user_email: str, max_results: int = 50):
        self.service = service
        self.user_email = user_email.lower()
        self.max_results = max_results

    def fetch_thread(self, account_id: str, contact_email: str) -> list[dict]:
        if account_id.strip().lower() != self.user_email:
            logger.warning(
                "Gmail mailbox %s asked for account %s; results come from the mailbox",
                self.user_email, account_id,
            )
        query = f"from:{contact_email} OR to:{contact_email}"
        try:
            stubs = self.search_messages(query)
            return [self.parse_message(self.get_message(stub["id"])) for stub in stubs]
        except HttpError as e:
            raise SourceUnavailable("gmail", str(e)) from e

    def search_messages(self, query: str) -> list[dict]:
        """Return message stubs matching the query, up to max_results."""
        messages: list[dict] = []
        page_token = None

        while len(messages) < self.max_results:
            result = (
                self.service.users()
                .messages()
                .list(userId="me", q=query, pageToken=page_token,
                      maxResults=self.max_results - len(messages))
                .execute()
            )
            messages.extend(result.get("messages", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return messages[: self.max_results]

    def get_message(self, message_id: str, fmt: str = "full") -> dict:
        """Fetch a single message in the specified format."""
        return (
            self.service.users()
            .messages()
            .get(userId="me", id=message_id, format=fmt)
            .execute()
        )

    def parse_message(self, raw_msg: dict) -> dict:
        """Flatten a raw Gmail API message into the gateway row shape."""
        payload = raw_msg.get("payload", {})

        header_map: dict[str, str] = {}
        for h in payload.get("headers", []):
            key = h.get("name", "").lower()
            # Keep first occurrence
            if key not in header_map:
                header_map[key] = h.get("value", "")

        body_parts: dict[str, list[str]] = {"html": [], "text": []}
        self._extract_parts(payload, body_parts)
        body = "\n".join(body_parts["text"]) or "\n".join(body_parts["html"]) or raw_msg.get("snippet", "")

        _, from_email = email.utils.parseaddr(header_map.get("from", ""))
        _, to_email = email.utils.parseaddr(header_map.get("to", ""))

        return {
            "message_id": raw_msg["id"],
            "thread_id": raw_msg.get("threadId"),
            "from": from_email.lower(),
            "to": to_email.lower(),
            "subject": header_map.get("subject", ""),
            "body": body,
            # internalDate is epoch millis and always present; Date header is sender-controlled
            "date": raw_msg.get("internalDate") or header_map.get("date"),
        }

    def _extract_parts(self, part: dict, body_parts: dict[str, list[str]]) -> None:
        """Recursively collect text/html bodies, skipping attachments."""
        if part.get("filename"):
            return

        sub_parts = part.get("parts", [])
        if sub_parts:
            for sub in sub_parts:
                self._extract_parts(sub, body_parts)
            return

        body_data = part.get("body", {}).get("data", "")
        if not body_data:
            return

        try:
            decoded = base64.urlsafe_b64decode(body_data).decode("utf-8", errors="replace")
        except (ValueError, TypeError):
            return

        mime_type = part.get("mimeType", "")
        if mime_type == "text/html":
            body_parts["html"].append(decoded)
        elif mime_type == "text/plain":
            body_parts["text"].append(decoded)
