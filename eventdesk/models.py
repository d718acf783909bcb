import enum

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Enum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventdesk.database import Base


class EventType(str, enum.Enum):
    SEMINAR  = "Seminar"
    WORKSHOP = "Workshop"


class Event(Base):
    __tablename__ = "events"

    id                 = Column(Integer,     primary_key=True, autoincrement=True)
    name               = Column(String(255), nullable=False)
    slug               = Column(String(255), nullable=False, unique=True, index=True)
    type               = Column(
        Enum(EventType, values_callable=lambda e: [m.value for m in e], name="event_type"),
        nullable=False,
    )
    location           = Column(String(255), nullable=False)
    description        = Column(Text,        nullable=True)
    start_time         = Column(DateTime,    nullable=False)
    end_time           = Column(DateTime,    nullable=False)
    quota              = Column(Integer,     nullable=False)
    # Relative URL under the static root, e.g. /uploads/ticket-1700000000000-design.png
    ticket_design      = Column(String(500), nullable=True)
    ticket_design_size = Column(Integer,     nullable=True)
    ticket_design_mime = Column(String(100), nullable=True)
    created_at         = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at         = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    tickets = relationship(
        "Ticket",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Ticket.id",
    )


class Ticket(Base):
    __tablename__ = "tickets"

    id          = Column(Integer,    primary_key=True, autoincrement=True)
    event_id    = Column(Integer,    ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    token       = Column(String(12), nullable=False, unique=True, index=True)
    qr_code_url = Column(String(500), nullable=False)
    is_verified = Column(Boolean,    default=False, nullable=False)
    created_at  = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    event       = relationship("Event", back_populates="tickets")
    participant = relationship(
        "Participant",
        back_populates="ticket",
        uselist=False,
        cascade="all, delete-orphan",
    )


class Participant(Base):
    __tablename__ = "participants"

    id            = Column(Integer,     primary_key=True, autoincrement=True)
    # unique: a ticket can be claimed once
    ticket_id     = Column(Integer,     ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, unique=True)
    name          = Column(String(255), nullable=False)
    email         = Column(String(255), nullable=False, index=True)
    phone         = Column(String(50),  nullable=True)
    organization  = Column(String(255), nullable=True)
    registered_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    ticket       = relationship("Ticket", back_populates="participant")
    certificates = relationship(
        "Certificate",
        back_populates="participant",
        cascade="all, delete-orphan",
    )


class Certificate(Base):
    """Issued outside this service; read here for the dashboard only."""
    __tablename__ = "certificates"

    id             = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True)
    sent           = Column(Boolean, default=False, nullable=False)
    created_at     = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participant = relationship("Participant", back_populates="certificates")


# ── Upload audit log ─────────────────────────────────────────────────────────
class FileUpload(Base):
    """Records every artifact write. The file area, not this table, owns the bytes."""
    __tablename__ = "file_uploads"

    id            = Column(Integer,     primary_key=True, autoincrement=True)
    filename      = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    path          = Column(String(500), nullable=False)
    size          = Column(Integer,     nullable=False)
    mime_type     = Column(String(100), nullable=True)
    upload_type   = Column(String(50),  nullable=False)   # ticket_design
    related_id    = Column(Integer,     nullable=True)
    created_at    = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
