"""One feed check run: load checkpoint, fetch + parse + evaluate every feed,
send notifications, persist checkpoint.

Failure policy:
- a feed that fails to fetch or parse is logged and skipped; the checkpoint
  still advances at the end of the run
- a checkpoint that cannot be decoded is replaced by the default state (or
  aborts the run when strict_state is set)
- a checkpoint store that cannot be read aborts the run before any fetch
- a failed send is logged and reported; the entry stays marked as seen
- a failed checkpoint write fails the run

Overlapping run_check() calls on the same checker are collapsed: the second
one returns immediately with status "skipped". Runs in other processes are
caught by the store's compare-and-swap write.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from blogwatch.dedup.novelty import SCOPE_GLOBAL, advance, evaluate
from blogwatch.errors import FetchError, ParseError, StateCorruptError, StatePersistError, StateReadError
from blogwatch.ingestion.entry_types import NewEntry, ParsedFeed
from blogwatch.ingestion.feed_parser import parse_feed
from blogwatch.ingestion.fetcher import FeedFetcher
from blogwatch.ingestion.sources import FeedList, build_feed_list
from blogwatch.notify.dispatcher import NotificationDispatcher, SendOutcome, build_sender
from blogwatch.storage.checkpoint import CheckpointState
from blogwatch.storage.checkpoint_store import CheckpointStore
from blogwatch.storage.kv import KeyValueStore
from blogwatch.storage.sqlite_kv import SQLiteKeyValueStore

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FeedFailure:
    url: str
    kind: str  # fetch | parse | error
    error: str


@dataclass
class RunReport:
    started_at: int
    feeds_checked: int = 0
    feed_errors: List[FeedFailure] = field(default_factory=list)
    new_entries: List[NewEntry] = field(default_factory=list)
    send_outcomes: List[SendOutcome] = field(default_factory=list)
    persisted: bool = False
    skipped: bool = False
    error: Optional[str] = None
    state: Optional[CheckpointState] = None

    @property
    def status(self) -> str:
        if self.skipped:
            return STATUS_SKIPPED
        if not self.persisted:
            return STATUS_FAILED
        if self.feed_errors or any(not o.ok for o in self.send_outcomes):
            return STATUS_DEGRADED
        return STATUS_OK

    @property
    def success(self) -> bool:
        return self.status in (STATUS_OK, STATUS_DEGRADED)

    def summary(self) -> dict:
        return {
            "status": self.status,
            "feeds_checked": self.feeds_checked,
            "feed_errors": len(self.feed_errors),
            "new_entries": len(self.new_entries),
            "notifications_sent": sum(1 for o in self.send_outcomes if o.ok),
            "notifications_failed": sum(1 for o in self.send_outcomes if not o.ok),
            "persisted": self.persisted,
        }


class FeedChecker:
    def __init__(
        self,
        store: CheckpointStore,
        fetcher: FeedFetcher,
        dispatcher: NotificationDispatcher,
        feed_list: FeedList,
        *,
        scope: str = SCOPE_GLOBAL,
        fetch_workers: int = 1,
        strict_state: bool = False,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.feed_list = feed_list
        self.scope = scope
        self.fetch_workers = max(1, fetch_workers)
        self.strict_state = strict_state
        self.clock = clock
        self._run_lock = threading.Lock()

    def run_check(self) -> RunReport:
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Feed check already in progress; skipping overlapping trigger")
            return RunReport(started_at=self.clock(), skipped=True)
        try:
            return self._run()
        finally:
            self._run_lock.release()

    def _load_state(self, report: RunReport) -> Optional[CheckpointState]:
        try:
            if not self.strict_state:
                return self.store.load_or_default()
            return self.store.load()
        except StateReadError as e:
            # Without the stored seen set every entry would look new
            report.error = f"checkpoint unreadable: {e}"
        except StateCorruptError as e:
            report.error = f"checkpoint unusable: {e}"
        logger.error(f"Aborting run, {report.error}")
        return None

    def _fetch_one(self, url: str) -> Tuple[str, Optional[ParsedFeed], Optional[FeedFailure]]:
        logger.info(f"Checking feed: {url}")
        try:
            raw = self.fetcher.fetch(url)
            return url, parse_feed(raw, fallback_url=url), None
        except FetchError as e:
            logger.error(f"Error fetching feed {url}: {e.reason}")
            return url, None, FeedFailure(url, "fetch", str(e))
        except ParseError as e:
            logger.error(f"Error parsing feed {url}: {e}")
            return url, None, FeedFailure(url, "parse", str(e))
        except Exception as e:
            logger.error(f"Error processing feed {url}: {e}", exc_info=True)
            return url, None, FeedFailure(url, "error", str(e))

    def _fetch_all(self, urls: List[str]) -> List[Tuple[str, Optional[ParsedFeed], Optional[FeedFailure]]]:
        if self.fetch_workers == 1 or len(urls) <= 1:
            return [self._fetch_one(u) for u in urls]
        with ThreadPoolExecutor(max_workers=self.fetch_workers) as pool:
            return list(pool.map(self._fetch_one, urls))

    def _run(self) -> RunReport:
        run_start = time.time()
        now = self.clock()
        report = RunReport(started_at=now)
        logger.info("=" * 60)
        logger.info("Feed check started")
        try:
            state = self._load_state(report)
            if state is None:
                return report
            logger.info(f"Loaded checkpoint: last check {state.last_check_iso}, {len(state.seen_entry_ids)} seen ids")

            try:
                urls = list(self.feed_list())
            except Exception as e:
                report.error = f"feed list unavailable: {e}"
                logger.error(f"Aborting run, {report.error}")
                return report

            # Fetch (possibly in parallel), then evaluate in feed-list order on this thread only
            for url, parsed, failure in self._fetch_all(urls):
                report.feeds_checked += 1
                if failure is not None:
                    report.feed_errors.append(failure)
                    continue
                new_entries, state = evaluate(parsed.entries, state, now, feed_key=url, scope=self.scope)
                report.new_entries.extend(new_entries)
                logger.info(
                    f"{url} ({parsed.title}): {len(new_entries)} new of {len(parsed.entries)} entries"
                    + (f", {parsed.skipped} skipped" if parsed.skipped else "")
                )

            advance(state, now)

            if report.new_entries:
                report.send_outcomes = self.dispatcher.dispatch(report.new_entries)
            else:
                logger.info("No new blog entries found")

            try:
                report.state = self.store.save(state)
                report.persisted = True
            except StatePersistError as e:
                report.error = f"checkpoint not saved: {e}"
                logger.error(f"Run failed, {report.error}")
            return report
        finally:
            logger.info(
                f"Feed check finished in {time.time() - run_start:.1f}s: {report.summary()}"
            )


def build_kv_store(config) -> KeyValueStore:
    if config.state_backend == "postgres":
        from blogwatch.storage.postgres_kv import PostgresKeyValueStore

        return PostgresKeyValueStore(config.pg_dsn)
    return SQLiteKeyValueStore(config.db_path)


def build_checker(config, kv: Optional[KeyValueStore] = None) -> FeedChecker:
    kv = kv or build_kv_store(config)
    dispatcher = NotificationDispatcher(
        build_sender(config),
        mail_from=config.email_from,
        mail_to=config.email_to,
        subject=config.email_subject,
        mode=config.notify_mode,
    )
    return FeedChecker(
        CheckpointStore(kv, config.state_key),
        FeedFetcher(timeout=config.request_timeout, max_bytes=config.max_feed_bytes),
        dispatcher,
        build_feed_list(config, kv),
        scope=config.dedup_scope,
        fetch_workers=config.fetch_workers,
        strict_state=config.strict_state,
    )
