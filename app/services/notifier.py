"""
app/services/notifier.py

Completion summary delivery to the uploader.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage
from functools import lru_cache
from typing import Protocol

from app.config import MailSettings, get_mail_settings
from app.domain.ingestion import IngestionSummary

logger = logging.getLogger(__name__)

SUMMARY_SUBJECT = "Bulk Data Processing Completed"


class SummaryNotifier(Protocol):
    def notify(self, owner_identity: str, summary: IngestionSummary, job_id: str) -> None:
        ...


def render_summary_html(summary: IngestionSummary, *, job_id: str, frontend_url: str) -> str:
    details_url = html.escape(f"{frontend_url}/processed-file-data/{job_id}", quote=True)
    error_items = "".join(
        f"<li>Row {error.row}: {html.escape(error.message)}</li>" for error in summary.errors
    )
    return (
        "<h3>Upload Summary</h3>"
        f'<p><a href="{details_url}" target="_blank">View Details</a></p>'
        f"<p>Total: {summary.total}</p>"
        f"<p>Success: {summary.success}</p>"
        f"<p>Failed: {summary.failed}</p>"
        f"<ul>{error_items}</ul>"
    )


def render_summary_text(summary: IngestionSummary, *, job_id: str, frontend_url: str) -> str:
    lines = [
        "Upload Summary",
        f"Details: {frontend_url}/processed-file-data/{job_id}",
        f"Total: {summary.total}",
        f"Success: {summary.success}",
        f"Failed: {summary.failed}",
    ]
    lines.extend(f"Row {error.row}: {error.message}" for error in summary.errors)
    return "\n".join(lines)


class SMTPSummaryNotifier:
    """
    Sends the summary e-mail through an SMTP relay.
    """

    def __init__(self, settings: MailSettings) -> None:
        if settings.host is None:
            raise ValueError("SMTP notifier requires MAIL_HOST.")
        self._settings = settings

    def build_message(self, owner_identity: str, summary: IngestionSummary, job_id: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = SUMMARY_SUBJECT
        message["From"] = self._settings.sender
        message["To"] = owner_identity
        message.set_content(
            render_summary_text(summary, job_id=job_id, frontend_url=self._settings.frontend_url)
        )
        message.add_alternative(
            render_summary_html(summary, job_id=job_id, frontend_url=self._settings.frontend_url),
            subtype="html",
        )
        return message

    def notify(self, owner_identity: str, summary: IngestionSummary, job_id: str) -> None:
        message = self.build_message(owner_identity, summary, job_id)
        settings = self._settings
        with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout_seconds) as smtp:
            if settings.use_tls:
                smtp.starttls()
            if settings.username and settings.password:
                smtp.login(settings.username, settings.password)
            smtp.send_message(message)
        logger.info("Summary e-mail sent job=%s to=%s", job_id, owner_identity)


class LoggingSummaryNotifier:
    """
    Fallback used when no SMTP host is configured.
    """

    def notify(self, owner_identity: str, summary: IngestionSummary, job_id: str) -> None:
        logger.info(
            "Mail disabled; summary for job=%s owner=%s total=%s success=%s failed=%s",
            job_id,
            owner_identity,
            summary.total,
            summary.success,
            summary.failed,
        )


@lru_cache(maxsize=1)
def get_summary_notifier() -> SummaryNotifier:
    settings = get_mail_settings()
    if settings.enabled:
        return SMTPSummaryNotifier(settings)
    return LoggingSummaryNotifier()
