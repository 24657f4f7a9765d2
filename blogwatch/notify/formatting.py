"""HTML rendering for notification emails."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import List, Sequence

from blogwatch.ingestion.entry_types import NewEntry


@dataclass(frozen=True)
class MailMessage:
    subject: str
    sender: str
    recipients: List[str]
    html_body: str


def format_date(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def _entry_line(entry: NewEntry) -> str:
    return (
        f"<strong>{escape(entry.feed_title)}</strong>: "
        f"<a href=\"{escape(entry.link, quote=True)}\">{escape(entry.title)}</a> "
        f"({escape(format_date(entry.effective_publish_time))})"
    )


def render_batch(entries: Sequence[NewEntry]) -> str:
    count = len(entries)
    plural = "s" if count != 1 else ""
    items = "".join(f"\n  <li>\n    {_entry_line(e)}\n  </li>" for e in entries)
    return (
        "<h1>New Blog Posts</h1>\n"
        f"<p>Found {count} new blog post{plural}:</p>\n"
        f"<ul>{items}\n</ul>\n"
        "<p>Enjoy your reading!</p>"
    )


def render_single(entry: NewEntry) -> str:
    parts = [f"<h1>{escape(entry.title)}</h1>", f"<p>{_entry_line(entry)}</p>"]
    author = entry.entry.author
    if author:
        parts.append(f"<p>By {escape(author)}</p>")
    summary = entry.entry.summary
    if summary:
        parts.append(f"<blockquote>{escape(summary)}</blockquote>")
    parts.append("<p>Enjoy your reading!</p>")
    return "\n".join(parts)


def single_subject(base: str, entry: NewEntry) -> str:
    return f"{base}: {entry.title}"
