"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from eventdesk.app import create_app
from eventdesk.config import Settings
from eventdesk.database import Base, make_engine, make_session_factory
from eventdesk.errors import Result
from eventdesk.issuance import EventService
from eventdesk.registration import RegistrationService
from eventdesk.schemas import EventForm
from eventdesk.storage import ArtifactStore


class RecordingMailer:
    """Stands in for Mailer; remembers who would have been emailed."""

    def __init__(self, result: Result = None) -> None:
        self.sent = []
        self.result = result or Result.success("recorded")

    def send_registration_confirmation(self, to_email, name, event) -> Result:
        self.sent.append((to_email, name, event.name))
        return self.result


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        server_url="http://testserver",
        static_root=str(tmp_path / "public"),
    )


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def session_factory(settings):
    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def artifacts(settings) -> ArtifactStore:
    store = ArtifactStore(settings.static_root)
    store.ensure_dirs()
    return store


@pytest.fixture
def event_service(db, artifacts, settings) -> EventService:
    return EventService(db, artifacts, settings.server_url)


@pytest.fixture
def registration_service(db, mailer) -> RegistrationService:
    return RegistrationService(db, mailer)


@pytest.fixture
def make_form():
    def _make(**overrides) -> EventForm:
        fields = {
            "name": "Intro Talk",
            "type": "Seminar",
            "location": "Hall A",
            "description": "An introduction",
            "start_time": "2026-11-02T10:00",
            "end_time": "2026-11-02T12:00",
            "quota": "3",
        }
        fields.update(overrides)
        return EventForm(**fields)
    return _make


@pytest.fixture
def client(settings, mailer):
    app = create_app(settings, mailer=mailer)
    with TestClient(app) as test_client:
        yield test_client
    app.state.engine.dispose()
