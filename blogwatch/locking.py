"""Cross-process lock so only one scheduler daemon runs per checkpoint."""

from __future__ import annotations

import errno
import fcntl
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessLock:
    """Exclusive, non-blocking flock on a lock file"""

    def __init__(self, lock_file: str):
        self.lock_file = lock_file
        self.lock_file_handle = None

    def acquire(self) -> bool:
        """Acquire a lock, return True if successful, False otherwise"""
        Path(self.lock_file).parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_file, 'a+')
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno in (errno.EAGAIN, errno.EACCES):
                handle.seek(0)
                pid = handle.read().strip() or "unknown PID"
                logger.warning(f"Another process is already running (PID: {pid})")
            else:
                logger.error(f"Failed to acquire process lock: {e}")
            handle.close()
            return False

        # Write the current PID to the lock file
        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self.lock_file_handle = handle
        logger.info(f"Process lock acquired (PID: {os.getpid()})")
        return True

    def release(self):
        """Release the lock"""
        if self.lock_file_handle:
            try:
                fcntl.flock(self.lock_file_handle, fcntl.LOCK_UN)
            finally:
                self.lock_file_handle.close()
                self.lock_file_handle = None
            logger.info("Process lock released")

    def __enter__(self):
        if not self.acquire():
            raise RuntimeError(f"lock {self.lock_file} is held by another process")
        return self

    def __exit__(self, *exc):
        self.release()
        return False
