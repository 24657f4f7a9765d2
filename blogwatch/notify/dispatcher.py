"""Notification dispatch for the entries found in one run.

Delivery is at-most-once: entries are already marked seen when dispatch
happens, and a failed send is only logged and reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from blogwatch.dedup.novelty import sort_newest_first
from blogwatch.errors import SendError
from blogwatch.ingestion.entry_types import NewEntry
from blogwatch.notify.formatting import MailMessage, render_batch, render_single, single_subject
from blogwatch.notify.senders import MailChannelsMailSender, MailSender, SmtpMailSender

logger = logging.getLogger(__name__)

MODE_BATCH = "batch"
MODE_PER_ENTRY = "per_entry"


@dataclass(frozen=True)
class SendOutcome:
    subject: str
    entry_keys: List[str]
    ok: bool
    error: Optional[str] = None


class NotificationDispatcher:
    def __init__(
        self,
        sender: MailSender,
        *,
        mail_from: str,
        mail_to: Sequence[str],
        subject: str = "New Blog Posts",
        mode: str = MODE_BATCH,
    ):
        if mode not in (MODE_BATCH, MODE_PER_ENTRY):
            raise ValueError(f"Unsupported notify mode: {mode}")
        self.sender = sender
        self.mail_from = mail_from
        self.mail_to = list(mail_to)
        self.subject = subject
        self.mode = mode

    def build_messages(self, entries: Sequence[NewEntry]) -> List[tuple]:
        ordered = sort_newest_first(entries)
        if not ordered:
            return []
        if self.mode == MODE_BATCH:
            msg = MailMessage(self.subject, self.mail_from, self.mail_to, render_batch(ordered))
            return [(msg, [e.dedup_key for e in ordered])]
        return [
            (
                MailMessage(single_subject(self.subject, e), self.mail_from, self.mail_to, render_single(e)),
                [e.dedup_key],
            )
            for e in ordered
        ]

    def dispatch(self, entries: Sequence[NewEntry]) -> List[SendOutcome]:
        outcomes: List[SendOutcome] = []
        for msg, keys in self.build_messages(entries):
            try:
                self.sender.send(msg)
            except SendError as e:
                logger.error(f"Failed to send '{msg.subject}': {e}")
                outcomes.append(SendOutcome(msg.subject, keys, ok=False, error=str(e)))
                continue
            except Exception as e:
                logger.error(f"Unexpected error sending '{msg.subject}': {e}", exc_info=True)
                outcomes.append(SendOutcome(msg.subject, keys, ok=False, error=f"unexpected: {e}"))
                continue
            outcomes.append(SendOutcome(msg.subject, keys, ok=True))
        return outcomes


def build_sender(config) -> MailSender:
    if config.mail_transport == "mailchannels":
        return MailChannelsMailSender(config.mailchannels_url, timeout=config.request_timeout)
    return SmtpMailSender(
        config.email_smtp_server,
        config.email_smtp_port,
        username=config.email_from,
        password=config.email_password,
        timeout=config.request_timeout,
    )
