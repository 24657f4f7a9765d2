import os
import tempfile
import unittest
from unittest import mock

from blogwatch.config import Config
from blogwatch.ingestion.sources import build_feed_list, feeds_from_env, feeds_from_file, feeds_from_store
from blogwatch.storage.kv import MemoryKeyValueStore

BASE_ENV = {
    "FEED_URLS": "https://a.example.com/feed, https://b.example.com/rss",
    "EMAIL_FROM": "bot@example.com",
    "EMAIL_TO": "me@example.com,you@example.com",
}


class TestConfig(unittest.TestCase):
    def test_from_env_defaults(self):
        with mock.patch.dict(os.environ, BASE_ENV, clear=True):
            config = Config.from_env()
        self.assertEqual(config.feed_urls, ["https://a.example.com/feed", "https://b.example.com/rss"])
        self.assertEqual(config.email_to, ["me@example.com", "you@example.com"])
        self.assertEqual(config.state_backend, "sqlite")
        self.assertEqual(config.state_key, "last_check_data")
        self.assertEqual(config.notify_mode, "batch")
        self.assertEqual(config.dedup_scope, "global")
        self.assertFalse(config.strict_state)

    def test_collects_all_errors(self):
        env = {"FEED_SOURCE": "env", "DEDUP_SCOPE": "weird", "NOTIFY_MODE": "carrier-pigeon"}
        with mock.patch.dict(os.environ, env, clear=True):
            with self.assertRaises(ValueError) as ctx:
                Config.from_env()
        msg = str(ctx.exception)
        self.assertIn("FEED_URLS is required", msg)
        self.assertIn("DEDUP_SCOPE", msg)
        self.assertIn("NOTIFY_MODE", msg)
        self.assertIn("EMAIL_TO is required", msg)

    def test_boolean_parsing(self):
        with mock.patch.dict(os.environ, dict(BASE_ENV, STRICT_STATE="yes"), clear=True):
            self.assertTrue(Config.from_env().strict_state)


class TestFeedSources(unittest.TestCase):
    def test_env_list_dedupes_and_keeps_order(self):
        self.assertEqual(
            feeds_from_env("https://b/rss,\nhttps://a/rss, https://b/rss,,"),
            ["https://b/rss", "https://a/rss"],
        )

    def test_file_list_ignores_comments(self):
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False) as f:
            f.write("# my feeds\nhttps://a/rss\n\nhttps://b/rss  # weekly\n")
        try:
            self.assertEqual(feeds_from_file(f.name), ["https://a/rss", "https://b/rss"])
        finally:
            os.unlink(f.name)

    def test_file_list_keeps_url_fragments(self):
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False) as f:
            f.write("https://x/feed#atom\nhttps://y/rss#frag\t# tabbed comment\n#https://z/disabled\n")
        try:
            self.assertEqual(feeds_from_file(f.name), ["https://x/feed#atom", "https://y/rss#frag"])
        finally:
            os.unlink(f.name)

    def test_store_list(self):
        kv = MemoryKeyValueStore({"feed:2": "https://b/rss", "feed:1": "https://a/rss", "last_check_data": "{}"})
        self.assertEqual(feeds_from_store(kv), ["https://a/rss", "https://b/rss"])

    def test_build_feed_list_uses_configured_source(self):
        kv = MemoryKeyValueStore({"feed:1": "https://stored/rss"})
        config = Config(feed_source="store")
        self.assertEqual(build_feed_list(config, kv)(), ["https://stored/rss"])
        config = Config(feed_source="env", feed_urls=["https://env/rss"])
        self.assertEqual(build_feed_list(config, kv)(), ["https://env/rss"])


if __name__ == "__main__":
    unittest.main()
