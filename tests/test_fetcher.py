import unittest
from unittest import mock

import requests

from blogwatch.errors import FetchError
from blogwatch.ingestion.fetcher import FeedFetcher


def fake_response(status_code=200, chunks=(b"<rss/>",)):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.iter_content.return_value = list(chunks)
    return resp


class TestFeedFetcher(unittest.TestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.fetcher = FeedFetcher(timeout=10, max_bytes=1024, session=self.session)

    def test_returns_body(self):
        self.session.get.return_value = fake_response(chunks=(b"<rss>", b"", b"</rss>"))
        self.assertEqual(self.fetcher.fetch("https://example.com/feed"), b"<rss></rss>")
        kwargs = self.session.get.call_args.kwargs
        self.assertEqual(kwargs["timeout"], (5, 10))
        self.assertIn("blogwatch", kwargs["headers"]["User-Agent"])
        self.session.get.return_value.close.assert_called_once()

    def test_http_error_status(self):
        self.session.get.return_value = fake_response(status_code=404)
        with self.assertRaises(FetchError) as ctx:
            self.fetcher.fetch("https://example.com/feed")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_network_failure_and_timeout(self):
        for exc in (requests.ConnectionError("refused"), requests.Timeout("slow")):
            with self.subTest(exc=type(exc).__name__):
                self.session.get.side_effect = exc
                with self.assertRaises(FetchError):
                    self.fetcher.fetch("https://example.com/feed")

    def test_many_chunks_up_to_the_cap(self):
        chunks = [b"x" * 16] * 64
        self.session.get.return_value = fake_response(chunks=chunks)
        body = self.fetcher.fetch("https://example.com/feed")
        self.assertIsInstance(body, bytes)
        self.assertEqual(body, b"x" * 1024)

    def test_body_too_large(self):
        self.session.get.return_value = fake_response(chunks=(b"x" * 800, b"x" * 800))
        with self.assertRaises(FetchError) as ctx:
            self.fetcher.fetch("https://example.com/feed")
        self.assertEqual(ctx.exception.reason, "too_large")

    def test_rejects_non_http_urls(self):
        for url in ("file:///etc/passwd", "ftp://example.com/feed", "https://", ""):
            with self.subTest(url=url):
                with self.assertRaises(FetchError):
                    self.fetcher.fetch(url)
        self.session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
