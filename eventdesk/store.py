"""SQLAlchemy-backed event store (repository pattern).

The store works inside the caller's Session and never commits; the
services own transaction boundaries.
"""

from typing import List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, joinedload

from eventdesk import models


def _ticket_counts():
    total = func.count(models.Ticket.id).label("total_tickets")
    verified = func.count(case((models.Ticket.is_verified.is_(True), 1))).label("verified_tickets")
    return total, verified


class EventStore:
    """Persistence operations for events, tickets, participants and uploads."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ── Events ───────────────────────────────────────────────────────────────

    def slug_taken(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        query = select(models.Event.id).where(models.Event.slug == slug)
        if exclude_id is not None:
            query = query.where(models.Event.id != exclude_id)
        return self.db.execute(query.limit(1)).first() is not None

    def add_event(self, event: models.Event) -> models.Event:
        """Stage the event and flush so it has an id."""
        self.db.add(event)
        self.db.flush()
        return event

    def get_event(self, event_id: int) -> Optional[models.Event]:
        return self.db.get(models.Event, event_id)

    def list_events_with_counts(self, limit: Optional[int] = None) -> List[Tuple[models.Event, int, int]]:
        """Return (event, total_tickets, verified_tickets), newest first."""
        total, verified = _ticket_counts()
        query = (
            select(models.Event, total, verified)
            .outerjoin(models.Ticket, models.Ticket.event_id == models.Event.id)
            .group_by(models.Event.id)
            .order_by(models.Event.created_at.desc(), models.Event.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [tuple(row) for row in self.db.execute(query).all()]

    def get_event_with_counts(self, event_id: int) -> Optional[Tuple[models.Event, int, int]]:
        total, verified = _ticket_counts()
        query = (
            select(models.Event, total, verified)
            .outerjoin(models.Ticket, models.Ticket.event_id == models.Event.id)
            .where(models.Event.id == event_id)
            .group_by(models.Event.id)
        )
        row = self.db.execute(query).first()
        return tuple(row) if row else None

    def delete_event(self, event: models.Event) -> None:
        self.db.delete(event)
        self.db.flush()

    # ── Tickets ──────────────────────────────────────────────────────────────

    def add_ticket(self, ticket: models.Ticket) -> models.Ticket:
        self.db.add(ticket)
        return ticket

    def tickets_for_event(self, event_id: int) -> List[models.Ticket]:
        query = (
            select(models.Ticket)
            .where(models.Ticket.event_id == event_id)
            .order_by(models.Ticket.id)
        )
        return list(self.db.scalars(query).all())

    def ticket_by_token(self, token: str) -> Optional[models.Ticket]:
        query = (
            select(models.Ticket)
            .options(joinedload(models.Ticket.event))
            .where(models.Ticket.token == token)
        )
        return self.db.scalars(query).first()

    def mark_verified(self, ticket_id: int) -> bool:
        """Flip is_verified false → true. Returns False if another claim got there first."""
        result = self.db.execute(
            update(models.Ticket)
            .where(models.Ticket.id == ticket_id, models.Ticket.is_verified.is_(False))
            .values(is_verified=True)
        )
        return result.rowcount == 1

    # ── Participants ─────────────────────────────────────────────────────────

    def add_participant(self, participant: models.Participant) -> models.Participant:
        self.db.add(participant)
        self.db.flush()
        return participant

    def participants_for_event(self, event_id: int) -> List[models.Participant]:
        query = (
            select(models.Participant)
            .join(models.Ticket, models.Participant.ticket_id == models.Ticket.id)
            .where(models.Ticket.event_id == event_id)
            .order_by(models.Participant.registered_at.desc(), models.Participant.id.desc())
        )
        return list(self.db.scalars(query).all())

    # ── Uploads ──────────────────────────────────────────────────────────────

    def record_upload(self, upload: models.FileUpload) -> models.FileUpload:
        self.db.add(upload)
        return upload

    # ── Dashboard ────────────────────────────────────────────────────────────

    def count(self, model) -> int:
        return self.db.scalar(select(func.count()).select_from(model)) or 0

    def count_verified_tickets(self) -> int:
        query = select(func.count()).select_from(models.Ticket).where(models.Ticket.is_verified.is_(True))
        return self.db.scalar(query) or 0

    def certificates(self) -> List[Tuple[models.Certificate, models.Participant, models.Event]]:
        query = (
            select(models.Certificate, models.Participant, models.Event)
            .join(models.Participant, models.Certificate.participant_id == models.Participant.id)
            .join(models.Ticket, models.Participant.ticket_id == models.Ticket.id)
            .join(models.Event, models.Ticket.event_id == models.Event.id)
            .order_by(models.Certificate.created_at.desc(), models.Certificate.id.desc())
        )
        return [tuple(row) for row in self.db.execute(query).all()]
