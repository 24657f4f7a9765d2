#!/usr/bin/env python3
"""Feed check worker.

Runs one feed check (CHECK_MODE=once) or keeps running on a schedule
(CHECK_MODE=scheduled): every CHECK_INTERVAL_HOURS hours, or daily at
CHECK_AT (HH:MM) when set.
"""

from __future__ import annotations

import logging
import signal
import sys
import time

import schedule
from dotenv import load_dotenv

from blogwatch.config import Config
from blogwatch.locking import ProcessLock
from blogwatch.runner import FeedChecker, build_checker

logger = logging.getLogger("feed_check_worker")


def setup_logging(log_file: str = "blogwatch.log") -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout),
        ],
    )


def run_once(checker: FeedChecker) -> bool:
    report = checker.run_check()
    if not report.success:
        logger.error(f"Feed check failed: {report.error or report.status}")
    return report.success


def schedule_checks(checker: FeedChecker, config: Config) -> schedule.Job:
    if config.check_at:
        job = schedule.every().day.at(config.check_at).do(run_once, checker)
        logger.info(f"📅 Schedule: daily at {config.check_at}")
    else:
        job = schedule.every(config.check_interval_hours).hours.do(run_once, checker)
        logger.info(f"📅 Schedule: every {config.check_interval_hours} hours")
    return job


def run_scheduled(checker: FeedChecker, config: Config) -> int:
    shutdown = {"requested": False}

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        shutdown["requested"] = True

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    process_lock = ProcessLock(config.lock_file)
    if not process_lock.acquire():
        logger.error("Another feed check worker is already running. Exiting.")
        return 1
    try:
        schedule_checks(checker, config)
        logger.info(f"Next run: {schedule.next_run()}")
        # Run once immediately so a fresh deployment reports right away
        run_once(checker)
        while not shutdown["requested"]:
            schedule.run_pending()
            time.sleep(5)
        logger.info("👋 Graceful shutdown completed")
    finally:
        schedule.clear()
        process_lock.release()
    return 0


def main() -> int:
    load_dotenv()
    setup_logging()
    try:
        config = Config.from_env()
    except ValueError as e:
        logger.error(f"Configuration error:\n{e}")
        return 1

    checker = build_checker(config)
    if config.check_mode in ("scheduled", "daemon"):
        return run_scheduled(checker, config)
    return 0 if run_once(checker) else 1


if __name__ == "__main__":
    raise SystemExit(main())
