"""Configuration loaded from environment variables (.env supported by callers)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

FEED_SOURCES = ("env", "file", "store")
STATE_BACKENDS = ("sqlite", "postgres")
DEDUP_SCOPES = ("global", "per_feed")
NOTIFY_MODES = ("batch", "per_entry")
MAIL_TRANSPORTS = ("smtp", "mailchannels")

DEFAULT_PG_DSN = "dbname=blogwatch user=blogwatch password=blogwatch host=localhost port=5432"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.replace("\n", ",").split(",") if part.strip()]


@dataclass
class Config:
    """Runtime configuration with validation"""

    # Feed list
    feed_source: str = "env"
    feed_urls: List[str] = field(default_factory=list)
    feed_file: str = "feeds.txt"

    # Checkpoint storage
    state_backend: str = "sqlite"
    db_path: str = "state/blogwatch.db"
    pg_dsn: str = DEFAULT_PG_DSN
    state_key: str = "last_check_data"
    strict_state: bool = False
    dedup_scope: str = "global"

    # Fetching
    request_timeout: int = 30  # seconds
    max_feed_bytes: int = 5_000_000
    fetch_workers: int = 1

    # Notifications
    notify_mode: str = "batch"
    mail_transport: str = "smtp"
    email_smtp_server: str = "smtp.gmail.com"
    email_smtp_port: int = 587
    email_from: str = ""
    email_password: str = ""
    email_to: List[str] = field(default_factory=list)
    email_subject: str = "New Blog Posts"
    mailchannels_url: str = "https://api.mailchannels.net/tx/v1/send"

    # Scheduling / process
    check_mode: str = "once"
    check_interval_hours: int = 24
    check_at: str = ""
    lock_file: str = "state/blogwatch.lock"
    web_port: int = 5001

    @classmethod
    def from_env(cls) -> 'Config':
        """Load and validate configuration from environment variables"""
        config = cls(
            feed_source=os.getenv('FEED_SOURCE', 'env').strip().lower(),
            feed_urls=_split_list(os.getenv('FEED_URLS', '')),
            feed_file=os.getenv('FEED_FILE', 'feeds.txt'),

            state_backend=os.getenv('STATE_BACKEND', 'sqlite').strip().lower(),
            db_path=os.getenv('DB_PATH', 'state/blogwatch.db'),
            pg_dsn=os.getenv('PG_DSN', DEFAULT_PG_DSN),
            state_key=os.getenv('STATE_KEY', 'last_check_data'),
            strict_state=_env_bool('STRICT_STATE'),
            dedup_scope=os.getenv('DEDUP_SCOPE', 'global').strip().lower(),

            request_timeout=int(os.getenv('REQUEST_TIMEOUT', '30')),
            max_feed_bytes=int(os.getenv('MAX_FEED_BYTES', '5000000')),
            fetch_workers=int(os.getenv('FETCH_WORKERS', '1')),

            notify_mode=os.getenv('NOTIFY_MODE', 'batch').strip().lower(),
            mail_transport=os.getenv('MAIL_TRANSPORT', 'smtp').strip().lower(),
            email_smtp_server=os.getenv('EMAIL_SMTP_SERVER', 'smtp.gmail.com'),
            email_smtp_port=int(os.getenv('EMAIL_SMTP_PORT', '587')),
            email_from=os.getenv('EMAIL_FROM', ''),
            email_password=os.getenv('EMAIL_PASSWORD', ''),
            email_to=_split_list(os.getenv('EMAIL_TO', '')),
            email_subject=os.getenv('EMAIL_SUBJECT', 'New Blog Posts'),
            mailchannels_url=os.getenv('MAILCHANNELS_URL', 'https://api.mailchannels.net/tx/v1/send'),

            check_mode=os.getenv('CHECK_MODE', 'once').strip().lower(),
            check_interval_hours=int(os.getenv('CHECK_INTERVAL_HOURS', '24')),
            check_at=os.getenv('CHECK_AT', '').strip(),
            lock_file=os.getenv('LOCK_FILE', 'state/blogwatch.lock'),
            web_port=int(os.getenv('WEB_PORT', '5001')),
        )

        config._validate()
        return config

    def _validate(self):
        """Validate configuration values"""
        errors = []

        if self.feed_source not in FEED_SOURCES:
            errors.append(f"FEED_SOURCE must be one of {', '.join(FEED_SOURCES)}")
        elif self.feed_source == "env" and not self.feed_urls:
            errors.append("FEED_URLS is required when FEED_SOURCE=env")
        elif self.feed_source == "file" and not self.feed_file:
            errors.append("FEED_FILE is required when FEED_SOURCE=file")

        if self.state_backend not in STATE_BACKENDS:
            errors.append(f"STATE_BACKEND must be one of {', '.join(STATE_BACKENDS)}")
        elif self.state_backend == "postgres" and not self.pg_dsn:
            errors.append("PG_DSN is required when STATE_BACKEND=postgres")
        if not self.state_key:
            errors.append("STATE_KEY must not be empty")

        if self.dedup_scope not in DEDUP_SCOPES:
            errors.append(f"DEDUP_SCOPE must be one of {', '.join(DEDUP_SCOPES)}")
        if self.notify_mode not in NOTIFY_MODES:
            errors.append(f"NOTIFY_MODE must be one of {', '.join(NOTIFY_MODES)}")
        if self.mail_transport not in MAIL_TRANSPORTS:
            errors.append(f"MAIL_TRANSPORT must be one of {', '.join(MAIL_TRANSPORTS)}")

        if not self.email_from or '@' not in self.email_from:
            errors.append("EMAIL_FROM must be a valid email address")
        if not self.email_to:
            errors.append("EMAIL_TO is required")
        elif any('@' not in addr for addr in self.email_to):
            errors.append("Invalid address in EMAIL_TO")

        if self.mail_transport == "smtp" and self.email_smtp_port not in [25, 465, 587, 1025, 2525]:
            errors.append("Invalid SMTP port (should be 25, 465, 587, 1025 or 2525)")

        if self.request_timeout < 1 or self.request_timeout > 300:
            errors.append("REQUEST_TIMEOUT should be between 1 and 300 seconds")
        if self.max_feed_bytes < 1024:
            errors.append("MAX_FEED_BYTES should be at least 1024")
        if self.fetch_workers < 1 or self.fetch_workers > 32:
            errors.append("FETCH_WORKERS should be between 1 and 32")
        if self.check_interval_hours < 1:
            errors.append("CHECK_INTERVAL_HOURS should be at least 1")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            raise ValueError(error_msg)

        logger.info(
            f"Configuration validated successfully. Feeds from {self.feed_source}, "
            f"state in {self.state_backend}, notify mode {self.notify_mode} via {self.mail_transport}"
        )
