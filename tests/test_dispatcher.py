import smtplib
import unittest
from unittest import mock

from blogwatch.errors import SendError
from blogwatch.ingestion.entry_types import NewEntry, RawEntry
from blogwatch.notify.dispatcher import NotificationDispatcher
from blogwatch.notify.formatting import MailMessage, render_batch
from blogwatch.notify.senders import MailChannelsMailSender, SmtpMailSender


def new_entry(cid, pub, title=None, feed="Blog", **extra):
    raw = RawEntry(candidate_id=cid, title=title or cid, link=f"https://example.com/{cid}", publish_time=pub, feed_title=feed, **extra)
    return NewEntry(entry=raw, effective_publish_time=pub, dedup_key=cid)


class RecordingSender:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.sent = []

    def send(self, message):
        if any(token in message.subject for token in self.fail_on):
            raise SendError(f"refused {message.subject}")
        self.sent.append(message)


class TestDispatcher(unittest.TestCase):
    def test_batch_sends_one_message_newest_first(self):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(sender, mail_from="bot@example.com", mail_to=["me@example.com"])
        outcomes = dispatcher.dispatch([new_entry("t1", 1000), new_entry("t3", 3000), new_entry("t2", 2000)])

        self.assertEqual(len(sender.sent), 1)
        self.assertEqual(len(outcomes), 1)
        self.assertTrue(outcomes[0].ok)
        self.assertEqual(outcomes[0].entry_keys, ["t3", "t2", "t1"])
        body = sender.sent[0].html_body
        self.assertLess(body.index(">t3<"), body.index(">t2<"))
        self.assertLess(body.index(">t2<"), body.index(">t1<"))
        self.assertIn("Found 3 new blog posts:", body)
        self.assertEqual(sender.sent[0].subject, "New Blog Posts")

    def test_per_entry_failure_is_isolated(self):
        sender = RecordingSender(fail_on=["bad"])
        dispatcher = NotificationDispatcher(
            sender, mail_from="bot@example.com", mail_to=["me@example.com"], subject="Blogs", mode="per_entry"
        )
        outcomes = dispatcher.dispatch([new_entry("good-1", 100), new_entry("bad", 200), new_entry("good-2", 300)])

        self.assertEqual([o.ok for o in outcomes], [True, False, True])
        self.assertEqual([m.subject for m in sender.sent], ["Blogs: good-2", "Blogs: good-1"])
        self.assertIn("refused", outcomes[1].error)

    def test_unexpected_sender_exception_is_recorded(self):
        sender = mock.Mock()
        sender.send.side_effect = RuntimeError("boom")
        dispatcher = NotificationDispatcher(sender, mail_from="a@example.com", mail_to=["b@example.com"], mode="per_entry")
        outcomes = dispatcher.dispatch([new_entry("x", 1), new_entry("y", 2)])
        self.assertEqual(sender.send.call_count, 2)
        self.assertFalse(any(o.ok for o in outcomes))

    def test_no_entries_no_messages(self):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(sender, mail_from="a@example.com", mail_to=["b@example.com"])
        self.assertEqual(dispatcher.dispatch([]), [])
        self.assertEqual(sender.sent, [])

    def test_html_is_escaped(self):
        body = render_batch([new_entry("x", 1, title="<script>alert(1)</script>", feed="A & B")])
        self.assertNotIn("<script>", body)
        self.assertIn("A &amp; B", body)
        self.assertIn("Found 1 new blog post:", body)


class TestSenders(unittest.TestCase):
    def setUp(self):
        self.message = MailMessage("Subject", "bot@example.com", ["me@example.com"], "<p>hi</p>")

    @mock.patch("blogwatch.notify.senders.smtplib.SMTP")
    def test_smtp_sends_with_starttls_and_login(self, smtp_cls):
        server = smtp_cls.return_value
        SmtpMailSender("smtp.example.com", 587, password="secret").send(self.message)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "secret")
        args = server.sendmail.call_args[0]
        self.assertEqual(args[0], "bot@example.com")
        self.assertEqual(args[1], ["me@example.com"])
        server.quit.assert_called_once()

    @mock.patch("blogwatch.notify.senders.smtplib.SMTP")
    def test_smtp_errors_become_send_error(self, smtp_cls):
        smtp_cls.return_value.sendmail.side_effect = smtplib.SMTPException("nope")
        with self.assertRaises(SendError):
            SmtpMailSender("smtp.example.com", 587).send(self.message)

    def test_mailchannels_requires_202(self):
        session = mock.Mock()
        session.post.return_value = mock.Mock(status_code=202, text="")
        sender = MailChannelsMailSender("https://mail.example/send", session=session)
        sender.send(self.message)
        payload = session.post.call_args.kwargs["json"]
        self.assertEqual(payload["personalizations"][0]["to"], [{"email": "me@example.com"}])
        self.assertEqual(payload["content"][0]["type"], "text/html")

        session.post.return_value = mock.Mock(status_code=500, text="server error")
        with self.assertRaises(SendError):
            sender.send(self.message)


if __name__ == "__main__":
    unittest.main()
