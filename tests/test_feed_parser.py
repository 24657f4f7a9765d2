import calendar
import unittest

from blogwatch.errors import ParseError
from blogwatch.ingestion.feed_parser import candidate_id, entry_publish_time, parse_feed


RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts</description>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <guid isPermaLink="false">post-1</guid>
      <pubDate>Tue, 10 Jun 2003 04:00:00 GMT</pubDate>
      <description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;</description>
    </item>
    <item>
      <title>No guid</title>
      <link>https://example.com/second</link>
    </item>
    <item>
      <title>Title only</title>
    </item>
    <item>
      <description>Nothing to identify this item</description>
    </item>
  </channel>
</rss>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Blog</title>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <updated>2003-12-13T18:30:02Z</updated>
  <entry>
    <title>Atom entry</title>
    <link href="https://example.org/2003/12/13/atom03"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2003-12-13T18:30:02Z</updated>
    <author><name>John Doe</name></author>
    <summary>Some text.</summary>
  </entry>
</feed>
"""


class TestFeedParser(unittest.TestCase):
    def test_rss_fields_and_defaults(self):
        feed = parse_feed(RSS)
        self.assertEqual(feed.title, "Example Blog")
        self.assertEqual(len(feed.entries), 3)
        self.assertEqual(feed.skipped, 1)

        first = feed.entries[0]
        self.assertEqual(first.candidate_id, "post-1")
        self.assertEqual(first.title, "First post")
        self.assertEqual(first.link, "https://example.com/first")
        self.assertEqual(first.publish_time, calendar.timegm((2003, 6, 10, 4, 0, 0)) * 1000)
        self.assertEqual(first.summary, "Hello world")
        self.assertEqual(first.feed_title, "Example Blog")

    def test_candidate_id_falls_back_to_link_then_title(self):
        feed = parse_feed(RSS)
        self.assertEqual(feed.entries[1].candidate_id, "https://example.com/second")
        self.assertIsNone(feed.entries[1].publish_time)
        self.assertEqual(feed.entries[2].candidate_id, "Title only")
        self.assertEqual(feed.entries[2].link, "#")

    def test_atom_entry(self):
        feed = parse_feed(ATOM)
        self.assertEqual(feed.title, "Atom Blog")
        entry = feed.entries[0]
        self.assertEqual(entry.candidate_id, "urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a")
        self.assertEqual(entry.link, "https://example.org/2003/12/13/atom03")
        self.assertEqual(entry.author, "John Doe")
        self.assertEqual(entry.publish_time, calendar.timegm((2003, 12, 13, 18, 30, 2)) * 1000)

    def test_untitled_feed_gets_default_title(self):
        raw = b'<?xml version="1.0"?><rss version="2.0"><channel><item><guid isPermaLink="false">x</guid></item></channel></rss>'
        feed = parse_feed(raw)
        self.assertEqual(feed.title, "Unknown Blog")
        self.assertEqual(feed.entries[0].title, "Untitled")

    def test_garbage_raises_parse_error(self):
        with self.assertRaises(ParseError):
            parse_feed(b"this is not a feed at all", fallback_url="https://example.com/feed")

    def test_candidate_id_helper(self):
        self.assertEqual(candidate_id(None, "  ", "t"), "t")
        self.assertEqual(candidate_id("", "", ""), "")

    def test_unparseable_pub_date_leaves_time_unset(self):
        raw = (
            b'<?xml version="1.0"?><rss version="2.0"><channel><title>Odd</title>'
            b"<item><guid>x</guid><title>Odd date</title><pubDate>sometime soon</pubDate></item>"
            b"</channel></rss>"
        )
        feed = parse_feed(raw)
        self.assertEqual(len(feed.entries), 1)
        self.assertIsNone(feed.entries[0].publish_time)

    def test_date_string_fallbacks(self):
        expected = calendar.timegm((2024, 1, 2, 3, 4, 5)) * 1000
        for value in (
            "Tue, 02 Jan 2024 03:04:05 +0000",
            "2024-01-02T03:04:05Z",
            "2024-01-02T04:04:05+01:00",
            "2024-01-02T03:04:05",
        ):
            with self.subTest(value=value):
                self.assertEqual(entry_publish_time({"published": value, "published_parsed": None}), expected)
        self.assertIsNone(entry_publish_time({"published": "sometime soon"}))
        self.assertEqual(entry_publish_time({"published": "garbage", "updated": "2024-01-02T03:04:05Z"}), expected)


if __name__ == "__main__":
    unittest.main()
