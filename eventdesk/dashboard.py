import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventdesk import models, schemas
from eventdesk.errors import StorageError
from eventdesk.store import EventStore

logger = logging.getLogger(__name__)


class DashboardService:
    """Read-only aggregates for the staff dashboard."""

    def __init__(self, db: Session) -> None:
        self._store = EventStore(db)

    def stats(self) -> schemas.DashboardStats:
        try:
            return schemas.DashboardStats(
                total_events       = self._store.count(models.Event),
                total_participants = self._store.count(models.Participant),
                total_tickets      = self._store.count(models.Ticket),
                verified_tickets   = self._store.count_verified_tickets(),
            )
        except SQLAlchemyError:
            logger.exception("Fetching dashboard stats failed")
            raise StorageError()

    def certificates(self) -> List[schemas.CertificateResponse]:
        try:
            rows = self._store.certificates()
        except SQLAlchemyError:
            logger.exception("Fetching certificates failed")
            raise StorageError()
        return [
            schemas.CertificateResponse(
                id               = certificate.id,
                sent             = certificate.sent,
                created_at       = certificate.created_at,
                participant_id   = participant.id,
                participant_name = participant.name,
                email            = participant.email,
                event_name       = event.name,
                event_type       = event.type,
            )
            for certificate, participant, event in rows
        ]
