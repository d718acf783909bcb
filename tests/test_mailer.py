"""Tests for the best-effort confirmation mailer."""

import email
import email.policy
import smtplib
from dataclasses import replace
from datetime import datetime
from types import SimpleNamespace

import pytest

from eventdesk import mailer as mailer_module
from eventdesk.mailer import Mailer
from eventdesk.models import EventType


@pytest.fixture
def event():
    return SimpleNamespace(
        name="Intro Talk",
        type=EventType.SEMINAR,
        location="Hall A",
        description="An <introduction>",
        start_time=datetime(2026, 11, 2, 10, 0),
        end_time=datetime(2026, 11, 2, 12, 0),
    )


@pytest.fixture
def smtp_settings(settings):
    return replace(settings, smtp_user="bot@example.org", smtp_pass="secret", smtp_from="Events <bot@example.org>")


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self):
        pass

    def login(self, user, password):
        self.credentials = (user, password)

    def sendmail(self, from_addr, to_addrs, message):
        self.sent.append((from_addr, to_addrs, message))


class TestMailer:

    def test_skips_when_smtp_not_configured(self, settings, event, monkeypatch):
        def explode(*args, **kwargs):
            raise AssertionError("SMTP must not be contacted")
        monkeypatch.setattr(mailer_module.smtplib, "SMTP", explode)

        result = Mailer(settings).send_registration_confirmation("ada@example.org", "Ada", event)

        assert result.ok
        assert "skipped" in result.detail

    def test_sends_through_smtp(self, smtp_settings, event, monkeypatch):
        FakeSMTP.instances.clear()
        monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)

        result = Mailer(smtp_settings).send_registration_confirmation("ada@example.org", "Ada", event)

        assert result.ok
        server = FakeSMTP.instances[0]
        assert server.credentials == ("bot@example.org", "secret")
        from_addr, to_addrs, message = server.sent[0]
        assert from_addr == "Events <bot@example.org>"
        assert to_addrs == ["ada@example.org"]
        parsed = email.message_from_string(message, policy=email.policy.default)
        assert parsed["Subject"] == "Registration Confirmed — Intro Talk"
        assert "You are registered for Intro Talk." in parsed.get_body(("plain",)).get_content()

    def test_smtp_failure_is_returned_not_raised(self, smtp_settings, event, monkeypatch):
        class BrokenSMTP(FakeSMTP):
            def login(self, user, password):
                raise smtplib.SMTPAuthenticationError(535, b"bad credentials")
        monkeypatch.setattr(mailer_module.smtplib, "SMTP", BrokenSMTP)

        result = Mailer(smtp_settings).send_registration_confirmation("ada@example.org", "Ada", event)

        assert not result.ok
        assert isinstance(result.error, smtplib.SMTPAuthenticationError)

    def test_connection_refused_is_returned_not_raised(self, smtp_settings, event, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no server")
        monkeypatch.setattr(mailer_module.smtplib, "SMTP", refuse)

        result = Mailer(smtp_settings).send_registration_confirmation("ada@example.org", "Ada", event)

        assert not result.ok


def test_html_body_escapes_event_fields(event):
    html = mailer_module._build_html("Ada <admin>", event)
    assert "&lt;introduction&gt;" in html
    assert "Ada &lt;admin&gt;" in html


def test_unencodable_recipient_is_returned_not_raised(smtp_settings, event, monkeypatch):
    class AsciiOnlySMTP(FakeSMTP):
        def sendmail(self, from_addr, to_addrs, message):
            # smtplib sends commands as ASCII unless SMTPUTF8 is negotiated
            for addr in to_addrs:
                f"rcpt TO:<{addr}>\r\n".encode("ascii")
            super().sendmail(from_addr, to_addrs, message)
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", AsciiOnlySMTP)

    result = Mailer(smtp_settings).send_registration_confirmation("jöse@example.org", "José", event)

    assert not result.ok
    assert isinstance(result.error, UnicodeEncodeError)
