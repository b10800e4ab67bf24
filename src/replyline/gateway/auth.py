"""Read-only Gmail API access for the Gmail thread gateway."""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from replyline.config import Config, GmailConfig

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


def _cached_credentials(token_path: Path) -> Credentials | None:
    if not token_path.exists():
        return None
    return Credentials.from_authorized_user_file(str(token_path), SCOPES)


def load_credentials(gmail: GmailConfig) -> Credentials:
    """Cached token, refreshed if expired; otherwise run the consent flow.

    Raises FileNotFoundError when a consent flow is needed and the OAuth
    client file is missing.
    """
    token_path = Path(gmail.token_file)
    creds = _cached_credentials(token_path)
    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing Gmail token %s", token_path)
        creds.refresh(Request())
    else:
        client_path = Path(gmail.credentials_file)
        if not client_path.exists():
            raise FileNotFoundError(
                f"Gmail OAuth client file not found: {client_path}. "
                "Download it from the Google Cloud Console."
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(client_path), SCOPES)
        creds = flow.run_local_server(port=0)

    token_path.write_text(creds.to_json())
    return creds


def get_gmail_service(config: Config):
    """Authenticated Gmail API service for the configured mailbox."""
    creds = load_credentials(config.gmail)
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def get_user_email(service) -> str:
    """Address of the mailbox the service is authorized for."""
    return service.users().getProfile(userId="me").execute()["emailAddress"]
