"""RSS/Atom parsing into RawEntry records.

feedparser does the heavy lifting; this module only normalizes its loosely
typed output into RawEntry values with documented defaults:

- candidate_id: guid, else link, else title (stripped); empty => item dropped
- title "Untitled", link "#", feed title "Unknown Blog"
- publish_time: published, updated or created date in epoch ms, else None
- summary: tag-stripped text, at most 500 characters
"""

from __future__ import annotations

import calendar
import html
import io
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import feedparser

from blogwatch.errors import ParseError
from blogwatch.ingestion.entry_types import ParsedFeed, RawEntry

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
DEFAULT_LINK = "#"
DEFAULT_FEED_TITLE = "Unknown Blog"
SUMMARY_MAX_CHARS = 500

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _strip_html(value: Any) -> Optional[str]:
    s = _text(value)
    if not s:
        return None
    s = html.unescape(_TAG_RE.sub(" ", s))
    s = _WS_RE.sub(" ", s).strip()
    return s[:SUMMARY_MAX_CHARS] or None


def _struct_to_ms(parsed: Any) -> Optional[int]:
    if not parsed:
        return None
    try:
        return calendar.timegm(parsed) * 1000
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_date_string(dt: Any) -> Optional[int]:
    s = _text(dt)
    if not s:
        return None
    parsed: Optional[datetime]
    try:
        parsed = parsedate_to_datetime(s)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        iso = s.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(iso)
        except ValueError:
            return None
    # Normalize naive to UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def entry_publish_time(item: Any) -> Optional[int]:
    """Best-effort publish time (epoch ms) for a feedparser entry."""
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        ms = _struct_to_ms(item.get(key))
        if ms is not None:
            return ms
    for key in ("published", "updated", "created"):
        ms = _parse_date_string(item.get(key))
        if ms is not None:
            return ms
    return None


def candidate_id(guid: Any, link: Any, title: Any) -> str:
    for value in (guid, link, title):
        s = _text(value)
        if s:
            return s
    return ""


def normalize_entry(item: Any, feed_title: str) -> RawEntry:
    guid = item.get("id") or item.get("guid")
    link = _text(item.get("link"))
    title = _text(item.get("title"))
    author = _text(item.get("author")) or None
    summary = _strip_html(item.get("summary") or item.get("description"))
    return RawEntry(
        candidate_id=candidate_id(guid, link, title),
        title=title or DEFAULT_TITLE,
        link=link or DEFAULT_LINK,
        publish_time=entry_publish_time(item),
        author=author,
        summary=summary,
        feed_title=feed_title,
    )


def parse_feed(raw: bytes, *, fallback_url: Optional[str] = None) -> ParsedFeed:
    """Parse raw RSS/Atom content.

    Raises ParseError only when the document framing is unusable; single bad
    items are logged and dropped.
    """
    parsed = feedparser.parse(io.BytesIO(raw))
    feed_meta = parsed.get("feed") or {}
    items = parsed.get("entries") or []
    if parsed.get("bozo") and not parsed.get("version") and not items and not feed_meta.get("title"):
        exc = parsed.get("bozo_exception")
        source = fallback_url or "feed"
        raise ParseError(f"{source}: unparseable feed ({exc or 'unknown format'})")

    feed_title = _text(feed_meta.get("title")) or DEFAULT_FEED_TITLE
    entries = []
    skipped = 0
    for idx, item in enumerate(items):
        try:
            entry = normalize_entry(item, feed_title)
        except Exception as e:
            logger.warning(f"Skipping malformed item #{idx} in {fallback_url or feed_title}: {e}")
            skipped += 1
            continue
        if not entry.has_identity:
            logger.info(f"Skipping item #{idx} in {fallback_url or feed_title}: no guid, link or title")
            skipped += 1
            continue
        entries.append(entry)
    return ParsedFeed(title=feed_title, entries=entries, skipped=skipped)
