import logging
from typing import Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eventdesk import models, schemas
from eventdesk.errors import AlreadyUsedError, NotFoundError, StorageError, ValidationError
from eventdesk.mailer import Mailer
from eventdesk.store import EventStore

logger = logging.getLogger(__name__)


def _normalise_email(value: str) -> str:
    email = value.strip().lower()
    if "@" not in email or "." not in email.split("@")[-1]:
        raise ValidationError("Invalid email address", ["email"])
    return email


class RegistrationService:
    """Resolves ticket tokens and records a participant claim exactly once."""

    def __init__(self, db: Session, mailer: Mailer) -> None:
        self._db = db
        self._store = EventStore(db)
        self._mailer = mailer

    def _claimable_ticket(self, token: str) -> Tuple[models.Ticket, models.Event]:
        try:
            ticket = self._store.ticket_by_token(token)
            event = ticket.event if ticket is not None else None
        except SQLAlchemyError:
            logger.exception("Token lookup failed")
            raise StorageError()
        if ticket is None:
            raise NotFoundError("Invalid token")
        if ticket.is_verified:
            raise AlreadyUsedError(token)
        return ticket, event

    def lookup(self, token: str) -> schemas.LookupResponse:
        """Return the event a token belongs to, if the ticket is still unclaimed."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Token is required", ["token"])
        _, event = self._claimable_ticket(token)
        return schemas.LookupResponse(event=schemas.EventSummary(
            id          = event.id,
            name        = event.name,
            type        = event.type,
            location    = event.location,
            description = event.description,
            start_time  = event.start_time,
            end_time    = event.end_time,
        ))

    def register(self, request: schemas.RegisterRequest) -> schemas.RegisterResponse:
        """
        Claim the ticket for a participant. The participant insert and the
        verified flag commit together; a second claim on the same token fails
        with AlreadyUsedError.
        """
        token = (request.token or "").strip()
        name = (request.name or "").strip()
        email = (request.email or "").strip()
        missing = [label for label, value in (("token", token), ("name", name), ("email", email)) if not value]
        if missing:
            raise ValidationError.missing(missing)
        email = _normalise_email(email)

        ticket, event = self._claimable_ticket(token)

        try:
            participant = self._store.add_participant(models.Participant(
                ticket_id    = ticket.id,
                name         = name,
                email        = email,
                phone        = (request.phone or "").strip() or None,
                organization = (request.organization or "").strip() or None,
            ))
            if not self._store.mark_verified(ticket.id):
                self._db.rollback()
                raise AlreadyUsedError(token)
            self._db.commit()
        except IntegrityError:
            # participants.ticket_id is unique: a concurrent claim committed first
            self._db.rollback()
            raise AlreadyUsedError(token)
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Registration failed for ticket %s", ticket.id)
            raise StorageError()

        logger.info("Ticket %s claimed by participant %s", ticket.id, participant.id)

        result = self._mailer.send_registration_confirmation(email, name, event)
        if result.ok:
            logger.info("Confirmation for participant %s: %s", participant.id, result.detail)
        else:
            logger.error("Confirmation email for participant %s failed: %s", participant.id, result.detail)

        return schemas.RegisterResponse(participant_id=participant.id)
