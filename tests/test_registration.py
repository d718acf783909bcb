"""Tests for RegistrationService: token lookup and one-time claims."""

from dataclasses import replace

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import OperationalError

from eventdesk import mailer as mailer_module
from eventdesk import models
from eventdesk.errors import AlreadyUsedError, NotFoundError, Result, StorageError, ValidationError
from eventdesk.mailer import Mailer
from eventdesk.registration import RegistrationService
from eventdesk.schemas import RegisterRequest
from eventdesk.store import EventStore


@pytest.fixture
def tokens(event_service, db, make_form):
    created = event_service.create_event(make_form(quota="3"))
    return db.scalars(
        select(models.Ticket.token)
        .where(models.Ticket.event_id == created.event_id)
        .order_by(models.Ticket.id)
    ).all()


def _participants_for(db, token) -> int:
    return db.scalar(
        select(func.count())
        .select_from(models.Participant)
        .join(models.Ticket, models.Participant.ticket_id == models.Ticket.id)
        .where(models.Ticket.token == token)
    )


class TestLookup:

    def test_returns_event_summary(self, registration_service, tokens):
        result = registration_service.lookup(tokens[0])

        assert result.event.name == "Intro Talk"
        assert result.event.type is models.EventType.SEMINAR
        assert result.event.location == "Hall A"

    def test_unknown_token(self, registration_service, tokens):
        with pytest.raises(NotFoundError):
            registration_service.lookup("NOPE00000000")

    def test_blank_token(self, registration_service):
        with pytest.raises(ValidationError):
            registration_service.lookup("  ")

    def test_claimed_token(self, registration_service, tokens):
        registration_service.register(RegisterRequest(token=tokens[0], name="Ada", email="ada@example.org"))
        with pytest.raises(AlreadyUsedError):
            registration_service.lookup(tokens[0])


class TestRegister:

    def test_records_participant_and_verifies_ticket(self, registration_service, session_factory, tokens, mailer):
        response = registration_service.register(RegisterRequest(
            token=tokens[0], name=" Ada Lovelace ", email="Ada@Example.org ",
            phone="+44 20 7946 0000", organization="",
        ))

        with session_factory() as fresh:
            participant = fresh.get(models.Participant, response.participant_id)
            assert participant.name == "Ada Lovelace"
            assert participant.email == "ada@example.org"
            assert participant.phone == "+44 20 7946 0000"
            assert participant.organization is None
            assert participant.ticket.token == tokens[0]
            assert participant.ticket.is_verified is True

        assert mailer.sent == [("ada@example.org", "Ada Lovelace", "Intro Talk")]

    def test_second_claim_fails_and_keeps_one_participant(self, registration_service, db, tokens, mailer):
        registration_service.register(RegisterRequest(token=tokens[0], name="Ada", email="ada@example.org"))

        with pytest.raises(AlreadyUsedError):
            registration_service.register(RegisterRequest(token=tokens[0], name="Eve", email="eve@example.org"))

        assert _participants_for(db, tokens[0]) == 1
        assert len(mailer.sent) == 1

    def test_unknown_token(self, registration_service, db, tokens):
        with pytest.raises(NotFoundError):
            registration_service.register(RegisterRequest(token="NOPE00000000", name="Ada", email="ada@example.org"))
        assert db.scalar(select(func.count()).select_from(models.Participant)) == 0

    def test_missing_fields_are_named(self, registration_service):
        with pytest.raises(ValidationError) as excinfo:
            registration_service.register(RegisterRequest(token="", name="Ada"))
        assert excinfo.value.fields == ("token", "email")

    def test_invalid_email(self, registration_service, tokens):
        with pytest.raises(ValidationError) as excinfo:
            registration_service.register(RegisterRequest(token=tokens[0], name="Ada", email="ada-at-example"))
        assert excinfo.value.fields == ("email",)

    def test_failed_notification_does_not_fail_registration(self, db, tokens, session_factory):
        class FailingMailer:
            def send_registration_confirmation(self, to_email, name, event):
                return Result.failure(OSError("smtp down"))

        service = RegistrationService(db, FailingMailer())
        response = service.register(RegisterRequest(token=tokens[1], name="Ada", email="ada@example.org"))

        with session_factory() as fresh:
            assert fresh.get(models.Participant, response.participant_id) is not None

    def test_concurrent_claim_loses_cleanly(self, registration_service, session_factory, db, tokens, monkeypatch):
        # Another request claims the ticket between our lookup and our insert
        with session_factory() as other:
            ticket = other.scalars(select(models.Ticket).where(models.Ticket.token == tokens[2])).one()
            other.add(models.Participant(ticket_id=ticket.id, name="Eve", email="eve@example.org"))
            other.commit()

        def stale_lookup(self, token):
            ticket = EventStore(db).ticket_by_token(token)
            return ticket, ticket.event

        monkeypatch.setattr(RegistrationService, "_claimable_ticket", stale_lookup)

        with pytest.raises(AlreadyUsedError):
            registration_service.register(RegisterRequest(token=tokens[2], name="Ada", email="ada@example.org"))

        assert _participants_for(db, tokens[2]) == 1

    def test_unsendable_address_still_registers(self, db, tokens, settings, session_factory, monkeypatch):
        class AsciiOnlySMTP:
            def __init__(self, host, port, timeout=None):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def ehlo(self):
                pass

            def starttls(self):
                pass

            def login(self, user, password):
                pass

            def sendmail(self, from_addr, to_addrs, message):
                for addr in to_addrs:
                    f"rcpt TO:<{addr}>\r\n".encode("ascii")

        monkeypatch.setattr(mailer_module.smtplib, "SMTP", AsciiOnlySMTP)
        smtp_settings = replace(settings, smtp_user="bot@example.org", smtp_pass="secret")
        service = RegistrationService(db, Mailer(smtp_settings))

        response = service.register(RegisterRequest(token=tokens[0], name="José", email="jöse@example.org"))

        with session_factory() as fresh:
            participant = fresh.get(models.Participant, response.participant_id)
            assert participant.email == "jöse@example.org"
            assert participant.ticket.is_verified is True

    def test_database_failure_rolls_back_claim(self, registration_service, session_factory, tokens, mailer, monkeypatch):
        def broken(self, ticket_id):
            raise OperationalError("UPDATE tickets", {}, Exception("disk I/O error"))
        monkeypatch.setattr(EventStore, "mark_verified", broken)

        with pytest.raises(StorageError):
            registration_service.register(RegisterRequest(token=tokens[0], name="Ada", email="ada@example.org"))

        with session_factory() as fresh:
            assert _participants_for(fresh, tokens[0]) == 0
            ticket = fresh.scalars(select(models.Ticket).where(models.Ticket.token == tokens[0])).one()
            assert ticket.is_verified is False
        assert mailer.sent == []

    def test_token_lookup_failure_is_a_storage_error(self, registration_service, tokens, monkeypatch):
        def broken(self, token):
            raise OperationalError("SELECT tickets", {}, Exception("connection lost"))
        monkeypatch.setattr(EventStore, "ticket_by_token", broken)

        with pytest.raises(StorageError):
            registration_service.lookup(tokens[0])


class TestIntroTalkScenario:

    def test_each_seat_claimed_once(self, registration_service, db, tokens):
        ids = [
            registration_service.register(RegisterRequest(
                token=token, name=f"Guest {i}", email=f"guest{i}@example.org",
            )).participant_id
            for i, token in enumerate(tokens)
        ]

        assert len(set(ids)) == 3
        assert db.scalar(select(func.count()).select_from(models.Participant)) == 3
        assert db.scalar(
            select(func.count()).select_from(models.Ticket).where(models.Ticket.is_verified.is_(True))
        ) == 3
        for token in tokens:
            with pytest.raises(AlreadyUsedError):
                registration_service.register(RegisterRequest(token=token, name="Late", email="late@example.org"))


class TestMarkVerified:

    def test_flips_once(self, db, tokens):
        store = EventStore(db)
        ticket = store.ticket_by_token(tokens[0])

        assert store.mark_verified(ticket.id) is True
        assert store.mark_verified(ticket.id) is False
        db.commit()

    def test_ticket_by_token_loads_event(self, session_factory, tokens):
        with session_factory() as fresh:
            ticket = EventStore(fresh).ticket_by_token(tokens[0])
            assert "event" not in inspect(ticket).unloaded
            assert ticket.event.name == "Intro Talk"
