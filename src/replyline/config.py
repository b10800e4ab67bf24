"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_REPLY_FIELDS = ["contact_email", "to", "recipient_email", "email"]


@dataclass
class StorageConfig:
    backend: str = "sqlite"
    sqlite_path: str = "replyline.db"


@dataclass
class GmailConfig:
    credentials_file: str = "credentials.json"
    token_file: str = "token.json"
    max_results: int = 50


@dataclass
class GatewayConfig:
    provider: str = "none"  # none | http | gmail
    api_base_url: str = "http://localhost:8000"
    endpoint: str = "/get_email_and_replies"
    timeout_seconds: float = 10.0
    max_workers: int = 4


@dataclass
class ReplyConfig:
    field_candidates: list[str] = field(default_factory=lambda: list(DEFAULT_REPLY_FIELDS))
    flag_field: str = "replied"


@dataclass
class ExportConfig:
    default_format: str = "csv"
    output_dir: str = "."


@dataclass
class Config:
    storage: StorageConfig = field(default_factory=StorageConfig)
    gmail: GmailConfig = field(default_factory=GmailConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    replies: ReplyConfig = field(default_factory=ReplyConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def _dict_to_config(data: dict) -> Config:
    """Convert a raw dict to a Config dataclass, handling nested structures."""
    from dacite import Config as DaciteConfig
    from dacite import from_dict

    # YAML reads "10" timeouts as int
    return from_dict(data_class=Config, data=data, config=DaciteConfig(cast=[float]))


def _config_candidates() -> list[Path]:
    candidates = []
    if os.environ.get("REPLYLINE_CONFIG"):
        candidates.append(Path(os.environ["REPLYLINE_CONFIG"]))
    candidates.append(Path("config.yaml"))
    candidates.append(Path.home() / ".config" / "replyline" / "config.yaml")
    return candidates


def _find_config_file() -> Path | None:
    """First existing file among REPLYLINE_CONFIG, ./config.yaml and the XDG dir."""
    return next((p for p in _config_candidates() if p.exists()), None)


def _load_dotenv(env_path: Path = Path(".env")) -> None:
    """Export KEY=VALUE pairs from a .env file; variables already set win."""
    if not env_path.exists():
        return
    for raw in env_path.read_text().splitlines():
        line = raw.strip()
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip().strip("\"'"))


# Environment variable -> (section, attribute)
ENV_OVERRIDES = {
    "REPLYLINE_DB": ("storage", "sqlite_path"),
    "REPLYLINE_GATEWAY": ("gateway", "provider"),
    "REPLYLINE_API_URL": ("gateway", "api_base_url"),
}


def _apply_env_overrides(config: Config) -> Config:
    for var, (section, attr) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            setattr(getattr(config, section), attr, value)
    return config


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from YAML file, merging with defaults.

    Also loads .env file and applies environment variable overrides.
    """
    _load_dotenv()

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = _find_config_file()

    if config_path is None:
        config = Config()
    else:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        config = _dict_to_config(raw)

    return _apply_env_overrides(config)
