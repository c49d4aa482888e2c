from datetime import date, datetime, timezone

import httpx
import pytest

from app.config import Settings
from app.services import notifications
from app.services.notifications import (
    AgreementNotice,
    AgreementNotifier,
    BookingNotice,
    EmailService,
    Party,
    dispatch_safely,
    strip_html,
)

LANDLORD = Party(name="Lina Landlord", email="lina@rentverse.io")
TENANT = Party(name="Tom Tenant", email="tom@rentverse.io")


def _notice(status="PENDING_LANDLORD", **overrides):
    fields = dict(
        agreement_id="agr-1",
        status=status,
        property_title="Sunny Loft",
        property_address="1 Jalan Bukit, Penang",
        landlord=LANDLORD,
        tenant=TENANT,
        expires_at=datetime(2026, 10, 25, 9, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return AgreementNotice(**fields)


def _settings(**overrides):
    base = dict(mailgun_api_key="", mailgun_domain="", smtp_host="", smtp_user="", smtp_password="")
    base.update(overrides)
    return Settings(**base)


def _mailgun_settings():
    return _settings(mailgun_api_key="key-123", mailgun_domain="mg.rentverse.io", mailgun_from_email="noreply@mg.rentverse.io")


def test_strip_html():
    assert strip_html("<p>Hello <b>there</b></p><style>p {}</style>") == "Hello there"


def test_unconfigured_service_logs_and_reports_success(caplog):
    service = EmailService(_settings())
    assert service.provider == "log"
    with caplog.at_level("INFO", logger=notifications.__name__):
        assert service.send("tom@rentverse.io", "Subject", "<p>Body</p>") is True
    assert "would send" in caplog.text


def test_empty_recipient_is_not_sent():
    assert EmailService(_settings()).send("", "Subject", "<p>Body</p>") is False


def test_mailgun_send():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "<msg@mg>", "message": "Queued"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    service = EmailService(_mailgun_settings(), client=client)
    assert service.provider == "mailgun"
    assert service.send("tom@rentverse.io", "Please sign", "<p>Sign here</p>") is True

    assert len(seen) == 1
    assert seen[0].url.path == "/v3/mg.rentverse.io/messages"
    body = seen[0].content.decode()
    assert "tom%40rentverse.io" in body
    assert "Please+sign" in body


def test_mailgun_retries_eu_endpoint_on_401():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "api.mailgun.net":
            return httpx.Response(401, text="Forbidden")
        return httpx.Response(200, json={"id": "eu"})

    service = EmailService(_mailgun_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert service.send("tom@rentverse.io", "s", "<p>b</p>") is True
    assert hosts == ["api.mailgun.net", "api.eu.mailgun.net"]


def test_mailgun_failure_returns_false():
    service = EmailService(
        _mailgun_settings(),
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))),
    )
    assert service.send("tom@rentverse.io", "s", "<p>b</p>") is False


def test_transport_error_returns_false():
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    service = EmailService(_mailgun_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert service.send("tom@rentverse.io", "s", "<p>b</p>") is False


def test_smtp_send(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host, self.port = host, port

        def starttls(self):
            pass

        def login(self, user, password):
            sent.append(("login", user))

        def sendmail(self, sender, recipients, message):
            sent.append(("sendmail", sender, recipients))

        def quit(self):
            sent.append(("quit",))

    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    service = EmailService(_settings(smtp_host="smtp.rentverse.io", smtp_user="mailer", smtp_password="pw"))
    assert service.provider == "smtp"
    assert service.send("tom@rentverse.io", "s", "<p>b</p>") is True
    assert sent == [
        ("login", "mailer"),
        ("sendmail", "noreply@rentverse.com", ["tom@rentverse.io"]),
        ("quit",),
    ]


def test_start_and_stop_own_the_client():
    service = EmailService(_mailgun_settings())
    service.start()
    assert service._client is not None
    service.stop()
    assert service._client is None


class _Recorder:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html_content, text_content=None):
        self.sent.append((to_email, subject, html_content))
        return True


@pytest.fixture
def recorder():
    return _Recorder()


def test_reminder_to_landlord(recorder):
    notifier = AgreementNotifier(recorder, frontend_url="https://app.rentverse.io/")
    assert notifier.send_signing_reminder(_notice(), "landlord") is True
    to, subject, html = recorder.sent[0]
    assert to == LANDLORD.email
    assert subject == "[RentVerse] Please sign the rental agreement for Sunny Loft"
    assert "https://app.rentverse.io/agreements/agr-1" in html
    assert "2026-10-25 09:00 UTC" in html


def test_tenant_is_told_to_wait_while_landlord_signs(recorder):
    AgreementNotifier(recorder).send_signing_reminder(_notice(), "tenant")
    to, subject, html = recorder.sent[0]
    assert to == TENANT.email
    assert "prepared" in subject
    assert "landlord signs first" in html.lower()


def test_completed_and_cancelled(recorder):
    notifier = AgreementNotifier(recorder)
    notifier.send_agreement_completed(_notice("COMPLETED"), "landlord")
    notifier.send_agreement_cancelled(_notice("CANCELLED", cancel_reason="<b>changed</b>"), "tenant")
    assert [s[0] for s in recorder.sent] == [LANDLORD.email, TENANT.email]
    assert "completed" in recorder.sent[0][1]
    assert "&lt;b&gt;changed&lt;/b&gt;" in recorder.sent[1][2]


def test_booking_confirmation(recorder):
    notice = BookingNotice(
        lease_id="lease-1",
        agreement_id="agr-1",
        property_title="Sunny Loft",
        property_address="1 Jalan Bukit",
        start_date=date(2026, 11, 1),
        end_date=date(2027, 10, 31),
        rent="MYR 2,500.00",
        landlord=LANDLORD,
        tenant=TENANT,
    )
    AgreementNotifier(recorder).send_booking_confirmation(notice)
    to, subject, html = recorder.sent[0]
    assert to == TENANT.email
    assert "Booking confirmed" in subject
    assert "MYR 2,500.00" in html


def test_dispatch_safely_swallows_failures(caplog):
    def broken(*args):
        raise RuntimeError("smtp down")

    dispatch_safely(broken, "x")
    assert "failed" in caplog.text
    dispatch_safely(lambda: False)
    assert "returned False" in caplog.text
