from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from eventdesk.models import EventType


# ── Inputs ───────────────────────────────────────────────────────────────────

class EventForm(BaseModel):
    """
    Raw event fields as submitted by the dashboard form.
    Everything is optional here; the service reports missing fields itself
    so the caller gets one 400 naming all of them.
    """
    name:        Optional[str] = None
    slug:        Optional[str] = None
    type:        Optional[str] = None
    location:    Optional[str] = None
    description: Optional[str] = None
    start_time:  Optional[str] = None
    end_time:    Optional[str] = None
    quota:       Optional[str] = None


class RegisterRequest(BaseModel):
    token:        Optional[str] = None
    name:         Optional[str] = None
    email:        Optional[str] = None
    phone:        Optional[str] = None
    organization: Optional[str] = None


# ── Outputs ──────────────────────────────────────────────────────────────────

class EventCreated(BaseModel):
    message:           str = "Event created successfully"
    event_id:          int = Field(serialization_alias="eventId")
    tickets_generated: int = Field(serialization_alias="ticketsGenerated")


class EventResponse(BaseModel):
    id:                 int
    name:               str
    slug:               str
    type:               EventType
    location:           str
    description:        Optional[str] = None
    start_time:         datetime
    end_time:           datetime
    quota:              int
    ticket_design:      Optional[str] = None
    ticket_design_size: Optional[int] = None
    ticket_design_mime: Optional[str] = None
    created_at:         Optional[datetime] = None
    updated_at:         Optional[datetime] = None
    total_tickets:      int = 0
    verified_tickets:   int = 0

    model_config = {"from_attributes": True}


class ParticipantResponse(BaseModel):
    id:            int
    ticket_id:     int
    name:          str
    email:         str
    phone:         Optional[str] = None
    organization:  Optional[str] = None
    registered_at: Optional[datetime] = None
    token:         str
    is_verified:   bool


class EventDetailResponse(BaseModel):
    event:        EventResponse
    participants: List[ParticipantResponse]


class TicketResponse(BaseModel):
    id:          int
    token:       str
    qr_code_url: str
    is_verified: bool

    model_config = {"from_attributes": True}


class EventSummary(BaseModel):
    """What an attendee sees after scanning a ticket."""
    id:          int
    name:        str
    type:        EventType
    location:    str
    description: Optional[str] = None
    start_time:  datetime
    end_time:    datetime


class LookupResponse(BaseModel):
    event: EventSummary


class RegisterResponse(BaseModel):
    message:        str = "Registration successful"
    participant_id: int = Field(serialization_alias="participantId")


class MessageResponse(BaseModel):
    message: str


class DashboardStats(BaseModel):
    total_events:       int
    total_participants: int
    total_tickets:      int
    verified_tickets:   int


class CertificateResponse(BaseModel):
    id:               int
    sent:             bool
    created_at:       Optional[datetime] = None
    participant_id:   int
    participant_name: str
    email:            str
    event_name:       str
    event_type:       EventType
