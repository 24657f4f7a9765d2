"""Feed list providers.

The run reads the feed list once; order defines fetch order only.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Iterable, List

from blogwatch.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

FEED_KEY_PREFIX = "feed:"

FeedList = Callable[[], List[str]]

# "#" opens a comment at line start or after whitespace; URL fragments are kept
_COMMENT_RE = re.compile(r"(^|\s)#.*$")


def _unique(urls: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for url in urls:
        u = (url or "").strip()
        if not u or u in seen:
            continue
        seen.add(u)
        out.append(u)
    return out


def feeds_from_env(value: str) -> List[str]:
    """Comma or newline separated URLs."""
    return _unique(value.replace("\n", ",").split(","))


def feeds_from_file(path: str) -> List[str]:
    """One URL per line; blank lines and # comments are ignored."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return _unique(_COMMENT_RE.sub("", line) for line in lines)


def feeds_from_store(store: KeyValueStore, prefix: str = FEED_KEY_PREFIX) -> List[str]:
    return _unique(store.list_values(prefix))


def build_feed_list(config, store: KeyValueStore) -> FeedList:
    if config.feed_source == "file":
        return lambda: feeds_from_file(config.feed_file)
    if config.feed_source == "store":
        return lambda: feeds_from_store(store)
    urls = _unique(config.feed_urls)
    return lambda: list(urls)
