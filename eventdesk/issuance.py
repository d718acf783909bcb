"""Event service: event lifecycle and ticket issuance.

Creating an event is one unit of work: the event row, its design upload
and all ``quota`` tickets (token + QR image each) commit together or not
at all. On failure the transaction is rolled back and every file written
for the attempt is removed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eventdesk import models, schemas
from eventdesk.errors import ConflictError, NotFoundError, StorageError, ValidationError
from eventdesk.storage import ArtifactStore, Upload, log_result
from eventdesk.store import EventStore
from eventdesk.utils import (
    generate_slug, generate_token, is_valid_slug, make_qr_png_bytes, registration_url,
)

logger = logging.getLogger(__name__)

# Form field → name reported back to the client
_REQUIRED = (
    ("name",       "name"),
    ("type",       "type"),
    ("location",   "location"),
    ("start_time", "startTime"),
    ("end_time",   "endTime"),
    ("quota",      "quota"),
)


@dataclass(frozen=True)
class EventFields:
    name:        str
    slug:        str
    type:        models.EventType
    location:    str
    description: Optional[str]
    start_time:  datetime
    end_time:    datetime
    quota:       int


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""


def _parse_datetime(value: str, label: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{label} must be an ISO 8601 timestamp", [label])


def parse_event_form(form: schemas.EventForm, require_slug: bool = False) -> EventFields:
    """Validate raw form input. Raises ValidationError naming the offending fields."""
    required = list(_REQUIRED)
    if require_slug:
        required.insert(1, ("slug", "slug"))
    missing = [label for attr, label in required if not _clean(getattr(form, attr))]
    if missing:
        raise ValidationError.missing(missing)

    name = _clean(form.name)

    try:
        event_type = models.EventType(_clean(form.type))
    except ValueError:
        allowed = ", ".join(t.value for t in models.EventType)
        raise ValidationError(f"type must be one of: {allowed}", ["type"])

    try:
        quota = int(_clean(form.quota))
    except ValueError:
        raise ValidationError("quota must be a whole number", ["quota"])
    if quota < 1:
        raise ValidationError("quota must be at least 1", ["quota"])

    slug = _clean(form.slug)
    if slug:
        if not is_valid_slug(slug):
            raise ValidationError(
                "slug may only contain lowercase letters, digits and single hyphens",
                ["slug"],
            )
    else:
        slug = generate_slug(name)
        if not slug:
            raise ValidationError("Cannot derive a slug from name; please supply one", ["slug"])

    # start/end ordering is not checked
    return EventFields(
        name        = name,
        slug        = slug,
        type        = event_type,
        location    = _clean(form.location),
        description = _clean(form.description) or None,
        start_time  = _parse_datetime(_clean(form.start_time), "startTime"),
        end_time    = _parse_datetime(_clean(form.end_time), "endTime"),
        quota       = quota,
    )


def _event_response(event: models.Event, total: int, verified: int) -> schemas.EventResponse:
    response = schemas.EventResponse.model_validate(event)
    return response.model_copy(update={"total_tickets": total, "verified_tickets": verified})


class EventService:
    """Service for creating, editing, listing and deleting events."""

    def __init__(self, db: Session, artifacts: ArtifactStore, base_url: str) -> None:
        self._db = db
        self._store = EventStore(db)
        self._artifacts = artifacts
        self._base_url = base_url

    # ── Issuance ─────────────────────────────────────────────────────────────

    def create_event(self, form: schemas.EventForm, design: Optional[Upload] = None) -> schemas.EventCreated:
        """Create the event and its full ticket inventory.

        Raises:
            ValidationError: Required fields missing or malformed.
            ConflictError: The slug is already used by another event.
            StorageError: Database or filesystem failure; nothing was kept.
        """
        fields = parse_event_form(form)

        try:
            slug_taken = self._store.slug_taken(fields.slug)
        except SQLAlchemyError:
            logger.exception("Slug lookup failed for %r", fields.slug)
            raise StorageError()
        if slug_taken:
            raise ConflictError(fields.slug)

        written: List[str] = []
        try:
            event = models.Event(
                name        = fields.name,
                slug        = fields.slug,
                type        = fields.type,
                location    = fields.location,
                description = fields.description,
                start_time  = fields.start_time,
                end_time    = fields.end_time,
                quota       = fields.quota,
            )

            if design is not None and design.size > 0:
                stored = self._artifacts.save_design(design)
                written.append(stored.url)
                event.ticket_design      = stored.url
                event.ticket_design_size = stored.size
                event.ticket_design_mime = stored.mime_type

            try:
                self._store.add_event(event)
            except IntegrityError:
                # Lost a race on the unique slug index
                self._abort(written)
                raise ConflictError(fields.slug)

            if design is not None and event.ticket_design:
                self._store.record_upload(models.FileUpload(
                    filename      = event.ticket_design.rsplit("/", 1)[-1],
                    original_name = design.filename,
                    path          = event.ticket_design,
                    size          = event.ticket_design_size,
                    mime_type     = event.ticket_design_mime,
                    upload_type   = "ticket_design",
                    related_id    = event.id,
                ))

            for _ in range(fields.quota):
                token = generate_token()
                png = make_qr_png_bytes(registration_url(self._base_url, token))
                stored = self._artifacts.save_qr(token, png)
                written.append(stored.url)
                self._store.add_ticket(models.Ticket(
                    event_id    = event.id,
                    token       = token,
                    qr_code_url = stored.url,
                    is_verified = False,
                ))

            self._db.commit()
        except ConflictError:
            raise
        except (SQLAlchemyError, OSError):
            logger.exception("Event issuance failed for slug %r; rolling back", fields.slug)
            self._abort(written)
            raise StorageError()
        except Exception:
            self._abort(written)
            raise

        logger.info("Event %s (%s) created with %d tickets", event.id, event.slug, fields.quota)
        return schemas.EventCreated(event_id=event.id, tickets_generated=fields.quota)

    def _abort(self, written: List[str]) -> None:
        self._db.rollback()
        for url in written:
            log_result(self._artifacts.delete(url), f"cleanup of {url}")

    # ── Maintenance ──────────────────────────────────────────────────────────

    def update_event(self, event_id: int, form: schemas.EventForm) -> None:
        """Update scalar fields. Quota changes do not mint or remove tickets."""
        fields = parse_event_form(form, require_slug=True)
        try:
            event = self._store.get_event(event_id)
            if event is None:
                raise NotFoundError("Event not found")
            if self._store.slug_taken(fields.slug, exclude_id=event_id):
                raise ConflictError(fields.slug)

            event.name        = fields.name
            event.slug        = fields.slug
            event.type        = fields.type
            event.location    = fields.location
            event.description = fields.description
            event.start_time  = fields.start_time
            event.end_time    = fields.end_time
            event.quota       = fields.quota
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            raise ConflictError(fields.slug)
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Updating event %s failed", event_id)
            raise StorageError()
        logger.info("Event %s updated", event_id)

    def delete_event(self, event_id: int) -> None:
        """Delete the event (cascading to tickets, participants, certificates), then its files."""
        try:
            event = self._store.get_event(event_id)
            if event is None:
                raise NotFoundError("Event not found")
            urls = [t.qr_code_url for t in self._store.tickets_for_event(event_id)]
            if event.ticket_design:
                urls.insert(0, event.ticket_design)
            self._store.delete_event(event)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Deleting event %s failed", event_id)
            raise StorageError()

        for url in urls:
            log_result(self._artifacts.delete(url), f"removal of {url}")
        logger.info("Event %s deleted (%d files released)", event_id, len(urls))

    # ── Queries ──────────────────────────────────────────────────────────────

    def list_events(self, limit: Optional[int] = None) -> List[schemas.EventResponse]:
        try:
            rows = self._store.list_events_with_counts(limit)
        except SQLAlchemyError:
            logger.exception("Listing events failed")
            raise StorageError()
        return [_event_response(event, total, verified) for event, total, verified in rows]

    def get_event(self, event_id: int) -> schemas.EventDetailResponse:
        try:
            row = self._store.get_event_with_counts(event_id)
            if row is None:
                raise NotFoundError("Event not found")
            participants = self._store.participants_for_event(event_id)
            participant_rows = [
                schemas.ParticipantResponse(
                    id            = p.id,
                    ticket_id     = p.ticket_id,
                    name          = p.name,
                    email         = p.email,
                    phone         = p.phone,
                    organization  = p.organization,
                    registered_at = p.registered_at,
                    token         = p.ticket.token,
                    is_verified   = p.ticket.is_verified,
                )
                for p in participants
            ]
        except SQLAlchemyError:
            logger.exception("Fetching event %s failed", event_id)
            raise StorageError()
        return schemas.EventDetailResponse(event=_event_response(*row), participants=participant_rows)

    def list_tickets(self, event_id: int) -> List[schemas.TicketResponse]:
        try:
            if self._store.get_event(event_id) is None:
                raise NotFoundError("Event not found")
            tickets = self._store.tickets_for_event(event_id)
        except SQLAlchemyError:
            logger.exception("Listing tickets for event %s failed", event_id)
            raise StorageError()
        return [schemas.TicketResponse.model_validate(t) for t in tickets]
