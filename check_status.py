#!/usr/bin/env python3
"""
Quick status check for the feed checker: configuration, feeds and checkpoint.
"""

import argparse
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

from blogwatch.config import Config
from blogwatch.errors import StateCorruptError, StateReadError
from blogwatch.ingestion.sources import FEED_KEY_PREFIX, build_feed_list
from blogwatch.runner import build_kv_store
from blogwatch.storage.checkpoint_store import CheckpointStore


def check_checkpoint(store):
    """Print the stored checkpoint"""
    print("\n🗄️  Checkpoint")
    print("-" * 40)
    try:
        state = store.load()
    except (StateCorruptError, StateReadError) as e:
        print(f"  ❌ Unusable checkpoint: {e}")
        return False
    if state.version is None:
        print("  No checkpoint stored yet (next run starts from scratch)")
        return True
    age = datetime.now(timezone.utc) - datetime.fromtimestamp(state.last_check_time / 1000, tz=timezone.utc)
    print(f"  Last check: {state.last_check_iso} ({age.total_seconds() / 3600:.1f}h ago)")
    print(f"  Seen entries: {len(state.seen_entry_ids)}")
    print(f"  Version: {state.version}")
    return True


def check_feeds(config, kv):
    """Print the configured feed list"""
    print(f"\n📡 Feeds (source: {config.feed_source})")
    print("-" * 40)
    try:
        urls = build_feed_list(config, kv)()
    except OSError as e:
        print(f"  ❌ Cannot read feed list: {e}")
        return False
    for url in urls:
        print(f"  {url}")
    if not urls:
        print("  ❌ No feeds configured")
    return bool(urls)


def main():
    parser = argparse.ArgumentParser(description="Show feed checker status")
    parser.add_argument("--add-feed", metavar="URL", help="store a feed URL (FEED_SOURCE=store)")
    args = parser.parse_args()

    load_dotenv()
    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    kv = build_kv_store(config)
    if args.add_feed:
        kv.put(f"{FEED_KEY_PREFIX}{args.add_feed}", args.add_feed)
        print(f"✅ Stored feed {args.add_feed}")

    ok = check_feeds(config, kv)
    ok = check_checkpoint(CheckpointStore(kv, config.state_key)) and ok
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
