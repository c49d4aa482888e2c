"""Email notifications for the agreement workflow (Mailgun HTTP API, SMTP, or log-only).

EmailService is constructed once by the application, started on startup and stopped
on shutdown; handlers receive it (wrapped in AgreementNotifier) through a dependency.
Sending never raises: failures are logged and reported as False so the signing
workflow never depends on the mail provider being up.
"""
from __future__ import annotations

import logging
import re
import smtplib
from dataclasses import dataclass
from datetime import date, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def strip_html(html: str) -> str:
    """Plain-text fallback for HTML bodies."""
    text = re.sub(r"<style[^>]*>.*?</style>", "", html or "", flags=re.S)
    text = re.sub(r"<script[^>]*>.*?</script>", "", text, flags=re.S)
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"\s+", " ", text).strip()


class EmailService:
    """Chooses Mailgun when an API key and domain are set, otherwise SMTP, otherwise logs the message."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None

    @property
    def provider(self) -> str:
        s = self.settings
        if s.mailgun_api_key and s.mailgun_domain:
            return "mailgun"
        if s.smtp_host and s.smtp_user and s.smtp_password:
            return "smtp"
        return "log"

    def start(self) -> None:
        if self.provider == "mailgun" and self._client is None:
            self._client = httpx.Client(timeout=10.0)
            self._owns_client = True
        logger.info("[Email] Provider: %s", self.provider)

    def stop(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def send(self, to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
        if not to_email:
            logger.warning("[Email] NOT SENT: empty recipient for subject=%s", subject)
            return False
        text = text_content or strip_html(html_content)
        provider = self.provider
        try:
            if provider == "mailgun":
                return self._send_mailgun(to_email, subject, html_content, text)
            if provider == "smtp":
                return self._send_smtp(to_email, subject, html_content, text)
        except Exception as e:
            logger.error("[Email] %s exception: to=%s error=%s: %s", provider, to_email, type(e).__name__, e)
            return False
        logger.info("[Email] Not configured, would send: to=%s subject=%s\n%s", to_email, subject, text)
        return True

    def _send_mailgun(self, to_email: str, subject: str, html_content: str, text_content: str) -> bool:
        s = self.settings
        if self._client is None:
            self.start()
        base = (s.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
        domain = s.mailgun_domain.strip().lower()
        from_addr = s.mailgun_from_email
        if "@" not in from_addr or from_addr.split("@")[-1].lower() != domain:
            # Mailgun rejects senders outside the sending domain
            from_addr = f"noreply@{domain}"
        data = {
            "from": f"{s.mailgun_from_name} <{from_addr}>",
            "to": to_email,
            "subject": subject,
            "text": text_content,
            "html": html_content,
        }
        r = self._client.post(f"{base}/v3/{domain}/messages", auth=("api", s.mailgun_api_key), data=data)
        if 200 <= r.status_code < 300:
            logger.info("[Email] Mailgun sent: to=%s status=%s", to_email, r.status_code)
            return True
        if r.status_code == 401 and base == MAILGUN_US_BASE:
            logger.warning("[Email] Mailgun 401 on US endpoint, retrying EU endpoint")
            r2 = self._client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", s.mailgun_api_key), data=data)
            if 200 <= r2.status_code < 300:
                logger.info("[Email] Mailgun sent (EU): to=%s", to_email)
                return True
            logger.error("[Email] Mailgun EU failed: status=%s body=%s", r2.status_code, r2.text[:500])
            return False
        logger.error("[Email] Mailgun failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
        return False

    def _send_smtp(self, to_email: str, subject: str, html_content: str, text_content: str) -> bool:
        s = self.settings
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{s.email_from_name} <{s.email_from}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_content, "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))

        if s.smtp_port == 465:
            server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=15)
        else:
            server = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=15)
        try:
            if s.smtp_port != 465:
                server.starttls()
            server.login(s.smtp_user, s.smtp_password)
            server.sendmail(s.email_from, [to_email], msg.as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException as e:
                logger.warning("[Email] Error closing SMTP connection: %s", e)
        logger.info("[Email] SMTP sent: to=%s", to_email)
        return True


@dataclass(frozen=True)
class Party:
    name: str
    email: str


@dataclass(frozen=True)
class AgreementNotice:
    """Snapshot of what an email needs, taken before the DB session closes."""
    agreement_id: str
    status: str
    property_title: str
    property_address: str
    landlord: Party
    tenant: Party
    expires_at: datetime | None = None
    completed_at: datetime | None = None
    cancel_reason: str | None = None


@dataclass(frozen=True)
class BookingNotice:
    lease_id: str
    agreement_id: str | None
    property_title: str
    property_address: str
    start_date: date
    end_date: date
    rent: str
    landlord: Party
    tenant: Party


def _fmt_dt(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M UTC") if dt else "-"


class AgreementNotifier:
    """Workflow-facing notifications. Each method returns True if the email was accepted."""

    def __init__(self, email: EmailService, frontend_url: str = ""):
        self.email = email
        self.frontend_url = (frontend_url or "").rstrip("/")

    def _agreement_link(self, agreement_id: str) -> str:
        return f"{self.frontend_url}/agreements/{agreement_id}"

    def _party(self, notice: AgreementNotice, role: str) -> Party:
        return notice.landlord if role == "landlord" else notice.tenant

    def send_signing_reminder(self, notice: AgreementNotice, role: str) -> bool:
        party = self._party(notice, role)
        link = self._agreement_link(notice.agreement_id)
        title = escape(notice.property_title)
        if role == "tenant" and notice.status == "PENDING_LANDLORD":
            subject = f"[RentVerse] Rental agreement prepared for {notice.property_title}"
            body = (
                f"<p>Hi {escape(party.name)},</p>"
                f"<p>The rental agreement for <strong>{title}</strong> has been sent for signing. "
                f"The landlord signs first; we will email you as soon as it is your turn.</p>"
            )
        else:
            subject = f"[RentVerse] Please sign the rental agreement for {notice.property_title}"
            body = (
                f"<p>Hi {escape(party.name)},</p>"
                f"<p>The rental agreement for <strong>{title}</strong> ({escape(notice.property_address)}) is waiting for your signature.</p>"
                f"<p>Please sign before <strong>{_fmt_dt(notice.expires_at)}</strong>.</p>"
            )
        html = body + f'<p><a href="{link}">Open agreement</a></p><p>The RentVerse Team</p>'
        return self.email.send(party.email, subject, html)

    def send_agreement_completed(self, notice: AgreementNotice, recipient: str) -> bool:
        party = self._party(notice, recipient)
        subject = f"[RentVerse] Rental agreement completed – {notice.property_title}"
        html = (
            f"<p>Hi {escape(party.name)},</p>"
            f"<p>Both parties have signed the rental agreement for <strong>{escape(notice.property_title)}</strong>.</p>"
            f"<p><strong>Completed:</strong> {_fmt_dt(notice.completed_at)}<br/>"
            f"<strong>Agreement ID:</strong> {notice.agreement_id}</p>"
            f'<p><a href="{self._agreement_link(notice.agreement_id)}">View agreement</a></p><p>The RentVerse Team</p>'
        )
        return self.email.send(party.email, subject, html)

    def send_agreement_cancelled(self, notice: AgreementNotice, recipient: str) -> bool:
        party = self._party(notice, recipient)
        subject = f"[RentVerse] Rental agreement cancelled – {notice.property_title}"
        html = (
            f"<p>Hi {escape(party.name)},</p>"
            f"<p>The rental agreement for <strong>{escape(notice.property_title)}</strong> has been cancelled by the landlord.</p>"
            f"<p><strong>Reason:</strong> {escape(notice.cancel_reason or '-')}</p><p>The RentVerse Team</p>"
        )
        return self.email.send(party.email, subject, html)

    def send_booking_confirmation(self, notice: BookingNotice) -> bool:
        subject = f"[RentVerse] Booking confirmed – {notice.property_title}"
        link = self._agreement_link(notice.agreement_id) if notice.agreement_id else self.frontend_url
        html = (
            f"<p>Hi {escape(notice.tenant.name)},</p>"
            f"<p>Your booking for <strong>{escape(notice.property_title)}</strong> ({escape(notice.property_address)}) "
            f"has been confirmed by {escape(notice.landlord.name)}.</p>"
            f"<p><strong>Period:</strong> {notice.start_date} – {notice.end_date}<br/>"
            f"<strong>Rent:</strong> {escape(notice.rent)}</p>"
            f"<p>Your rental agreement will be sent for signing shortly.</p>"
            f'<p><a href="{link}">View booking</a></p><p>The RentVerse Team</p>'
        )
        return self.email.send(notice.tenant.email, subject, html)


def dispatch_safely(fn, *args) -> None:
    """Run a notification, logging instead of raising. Used as the background task body."""
    try:
        ok = fn(*args)
        if ok is False:
            logger.warning("[Email] Notification %s returned False", getattr(fn, "__name__", fn))
    except Exception:
        logger.exception("[Email] Notification %s failed", getattr(fn, "__name__", fn))
