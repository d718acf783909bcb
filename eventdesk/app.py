import logging
import os
from typing import List, Optional

from fastapi import FastAPI, Depends, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from eventdesk import schemas
from eventdesk.config import Settings
from eventdesk.dashboard import DashboardService
from eventdesk.database import Base, get_db, make_engine, make_session_factory, ping
from eventdesk.errors import DomainError, ErrorCode
from eventdesk.issuance import EventService
from eventdesk.mailer import Mailer
from eventdesk.registration import RegistrationService
from eventdesk.storage import TICKETS_DIR, UPLOADS_DIR, ArtifactStore, Upload

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CONFLICT:         400,
    ErrorCode.ALREADY_USED:     400,
    ErrorCode.NOT_FOUND:        404,
    ErrorCode.STORAGE_ERROR:    500,
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def verify_admin(
    request: Request,
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
):
    """Dashboard routes require X-Admin-Key when ADMIN_KEY is configured."""
    expected = get_settings(request).admin_key
    if expected and x_admin_key != expected:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def get_event_service(request: Request, db: Session = Depends(get_db)) -> EventService:
    return EventService(db, request.app.state.artifacts, get_settings(request).server_url)


def get_registration_service(request: Request, db: Session = Depends(get_db)) -> RegistrationService:
    return RegistrationService(db, request.app.state.mailer)


def get_dashboard_service(db: Session = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


def event_form(
    name:        Optional[str] = Form(None),
    slug:        Optional[str] = Form(None),
    type:        Optional[str] = Form(None),
    location:    Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    start_time:  Optional[str] = Form(None, alias="startTime"),
    end_time:    Optional[str] = Form(None, alias="endTime"),
    quota:       Optional[str] = Form(None),
) -> schemas.EventForm:
    return schemas.EventForm(
        name=name, slug=slug, type=type, location=location, description=description,
        start_time=start_time, end_time=end_time, quota=quota,
    )


def _read_upload(upload: Optional[UploadFile]) -> Optional[Upload]:
    if upload is None or not upload.filename:
        return None
    try:
        content = upload.file.read()
    finally:
        upload.file.close()
    return Upload(filename=upload.filename, content=content, content_type=upload.content_type)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None, mailer: Optional[Mailer] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    engine = make_engine(settings.database_url, settings.db_pool_timeout)
    # Create tables on startup
    Base.metadata.create_all(bind=engine)

    artifacts = ArtifactStore(settings.static_root)
    artifacts.ensure_dirs()

    app = FastAPI(title="Event Desk API", version="1.0.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.artifacts = artifacts
    app.state.mailer = mailer or Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    def domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(
            status_code=STATUS_BY_CODE.get(exc.code, 500),
            content={"detail": exc.message, "code": exc.code.value},
        )

    # ── Public routes ─────────────────────────────────────────────────────────

    @app.get("/health")
    def health_check(request: Request):
        return {"status": "ok", "database": ping(request.app.state.engine)}

    @app.get("/register", response_model=schemas.LookupResponse)
    def lookup_ticket(
        token: Optional[str] = Query(None),
        service: RegistrationService = Depends(get_registration_service),
    ):
        """Resolve a ticket token to its event (used by the registration page on load)."""
        return service.lookup(token or "")

    @app.post("/register", response_model=schemas.RegisterResponse)
    def register_participant(
        payload: schemas.RegisterRequest,
        service: RegistrationService = Depends(get_registration_service),
    ):
        return service.register(payload)

    # ── Admin routes ──────────────────────────────────────────────────────────

    @app.post(
        "/events",
        response_model=schemas.EventCreated,
        dependencies=[Depends(verify_admin)],
    )
    def create_event(
        form: schemas.EventForm = Depends(event_form),
        ticket_design: Optional[UploadFile] = File(None, alias="ticketDesign"),
        service: EventService = Depends(get_event_service),
    ):
        return service.create_event(form, _read_upload(ticket_design))

    @app.get(
        "/events",
        response_model=List[schemas.EventResponse],
        dependencies=[Depends(verify_admin)],
    )
    def list_events(
        limit: Optional[int] = Query(None, ge=1),
        service: EventService = Depends(get_event_service),
    ):
        return service.list_events(limit)

    @app.get(
        "/events/{event_id}",
        response_model=schemas.EventDetailResponse,
        dependencies=[Depends(verify_admin)],
    )
    def get_event(event_id: int, service: EventService = Depends(get_event_service)):
        return service.get_event(event_id)

    @app.get(
        "/events/{event_id}/tickets",
        response_model=List[schemas.TicketResponse],
        dependencies=[Depends(verify_admin)],
    )
    def list_tickets(event_id: int, service: EventService = Depends(get_event_service)):
        return service.list_tickets(event_id)

    @app.put(
        "/events/{event_id}",
        response_model=schemas.MessageResponse,
        dependencies=[Depends(verify_admin)],
    )
    def update_event(
        event_id: int,
        form: schemas.EventForm = Depends(event_form),
        service: EventService = Depends(get_event_service),
    ):
        service.update_event(event_id, form)
        return schemas.MessageResponse(message="Event updated successfully")

    @app.delete(
        "/events/{event_id}",
        response_model=schemas.MessageResponse,
        dependencies=[Depends(verify_admin)],
    )
    def delete_event(event_id: int, service: EventService = Depends(get_event_service)):
        service.delete_event(event_id)
        return schemas.MessageResponse(message="Event deleted successfully")

    @app.get(
        "/dashboard/stats",
        response_model=schemas.DashboardStats,
        dependencies=[Depends(verify_admin)],
    )
    def dashboard_stats(service: DashboardService = Depends(get_dashboard_service)):
        return service.stats()

    @app.get(
        "/certificates",
        response_model=List[schemas.CertificateResponse],
        dependencies=[Depends(verify_admin)],
    )
    def list_certificates(service: DashboardService = Depends(get_dashboard_service)):
        return service.certificates()

    # Generated QR codes and uploaded designs are served as static assets
    app.mount(f"/{UPLOADS_DIR}", StaticFiles(directory=os.path.join(artifacts.root, UPLOADS_DIR)), name=UPLOADS_DIR)
    app.mount(f"/{TICKETS_DIR}", StaticFiles(directory=os.path.join(artifacts.root, TICKETS_DIR)), name=TICKETS_DIR)

    logger.info("Event Desk ready (database=%s, static_root=%s)", engine.url.render_as_string(hide_password=True), artifacts.root)
    return app
