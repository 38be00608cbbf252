from __future__ import annotations

import unittest
from unittest.mock import patch

from app.config import MailSettings
from app.domain.ingestion import IngestionSummary, RowError
from app.services.notifier import (
    SUMMARY_SUBJECT,
    LoggingSummaryNotifier,
    SMTPSummaryNotifier,
    render_summary_html,
)

SUMMARY = IngestionSummary(
    total=3,
    success=2,
    failed=1,
    errors=[RowError(row=2, message="value <too> long")],
)


class TestSMTPSummaryNotifier(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = MailSettings(
            host="smtp.example.com",
            port=2525,
            username="mailer",
            password="secret",
            sender="ingest@example.com",
            frontend_url="https://app.example.com",
        )

    def test_message_headers_and_parts(self) -> None:
        message = SMTPSummaryNotifier(self.settings).build_message("ann@example.com", SUMMARY, "job-1")

        self.assertEqual(message["Subject"], SUMMARY_SUBJECT)
        self.assertEqual(message["To"], "ann@example.com")
        self.assertEqual(message["From"], "ingest@example.com")
        html_part = message.get_body(preferencelist=("html",)).get_content()
        self.assertIn("https://app.example.com/processed-file-data/job-1", html_part)
        self.assertIn("Failed: 1", html_part)

    def test_notify_sends_through_smtp(self) -> None:
        with patch("app.services.notifier.smtplib.SMTP") as smtp_cls:
            SMTPSummaryNotifier(self.settings).notify("ann@example.com", SUMMARY, "job-1")

        smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=30)
        smtp = smtp_cls.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "secret")
        smtp.send_message.assert_called_once()

    def test_requires_host(self) -> None:
        with self.assertRaises(ValueError):
            SMTPSummaryNotifier(MailSettings())


class TestRendering(unittest.TestCase):
    def test_error_messages_are_escaped(self) -> None:
        body = render_summary_html(SUMMARY, job_id="job-1", frontend_url="http://localhost:3000")

        self.assertIn("Row 2: value &lt;too&gt; long", body)
        self.assertNotIn("<too>", body)

    def test_logging_notifier(self) -> None:
        with self.assertLogs("app.services.notifier", level="INFO") as logs:
            LoggingSummaryNotifier().notify("ann@example.com", SUMMARY, "job-1")
        self.assertIn("job-1", logs.output[0])


if __name__ == "__main__":
    unittest.main()
