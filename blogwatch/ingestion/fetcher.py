"""Raw feed retrieval over HTTP.

Policy:
- One GET per call, no retries (a failed feed is skipped for the run).
- Bodies are capped at max_bytes so a misbehaving server cannot exhaust memory.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import requests

from blogwatch.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "blogwatch/1.0"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.5"


def _validate_feed_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched."""
    try:
        p = urlparse(url)
    except Exception:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not (p.hostname or "").strip():
        return "missing_host"
    return None


class FeedFetcher:
    def __init__(
        self,
        *,
        timeout: int = 30,
        max_bytes: int = 5_000_000,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.session = session or requests.Session()

    def fetch(self, url: str) -> bytes:
        err = _validate_feed_url(url or "")
        if err:
            raise FetchError(url, err)
        try:
            resp = self.session.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": FEED_ACCEPT},
                timeout=(5, self.timeout),
                allow_redirects=True,
                stream=True,
            )
        except requests.Timeout as e:
            raise FetchError(url, f"timeout: {e}") from e
        except requests.RequestException as e:
            raise FetchError(url, f"request failed: {e}") from e

        try:
            if resp.status_code >= 400:
                raise FetchError(url, f"http_{resp.status_code}", status_code=resp.status_code)
            content = bytearray()
            try:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if not chunk:
                        continue
                    content.extend(chunk)
                    if len(content) > self.max_bytes:
                        raise FetchError(url, "too_large", status_code=resp.status_code)
            except requests.RequestException as e:
                raise FetchError(url, f"read failed: {e}", status_code=resp.status_code) from e
        finally:
            resp.close()

        logger.debug(f"Fetched {len(content)} bytes from {url}")
        return bytes(content)
