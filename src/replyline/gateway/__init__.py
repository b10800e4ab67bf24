"""Thread-retrieval gateway factory."""

from __future__ import annotations

from replyline.config import Config
from replyline.gateway.http import HttpThreadGateway
from replyline.sources.base import MessageRetrievalGateway


def get_gateway(config: Config) -> MessageRetrievalGateway | None:
    """Build the gateway named by ``config.gateway.provider``.

    Returns None for "none": conversations then come from the logs alone.
    """
    provider = config.gateway.provider.strip().lower()

    if provider in ("", "none"):
        return None
    if provider == "http":
        return HttpThreadGateway(
            base_url=config.gateway.api_base_url,
            endpoint=config.gateway.endpoint,
            timeout=config.gateway.timeout_seconds,
        )
    if provider == "gmail":
        # Google client libraries are heavy; only import them when asked for
        from replyline.gateway.auth import get_gmail_service, get_user_email
        from replyline.gateway.gmail import GmailThreadGateway

        service = get_gmail_service(config)
        return GmailThreadGateway(service, get_user_email(service), max_results=config.gmail.max_results)
    raise ValueError(f"Unknown gateway provider: {provider!r}. Use 'none', 'http' or 'gmail'.")
