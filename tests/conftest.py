# tests/conftest.py
import itertools
import os
import tempfile
from datetime import datetime, timezone

# Settings are read once and cached, so the test environment has to be in
# place before anything under `proofmeet` is imported.
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "proofmeet_test.db")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_PATH}"
os.environ["VERIFICATION_BASE_URL"] = "https://verify.example.test"
os.environ["APP_ENV"] = "test"
os.environ.pop("INTERNAL_API_KEY", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from proofmeet.db.session import AsyncSessionLocal, init_db, reset_schema_sync  # noqa: E402
from proofmeet.main import create_app  # noqa: E402
from proofmeet.schemas.meeting import MeetingCreate  # noqa: E402
from proofmeet.schemas.participant import ParticipantCreate  # noqa: E402
from proofmeet.services.attendance_tracker import AttendanceTracker  # noqa: E402
from proofmeet.services.court_card_issuer import CourtCardIssuer  # noqa: E402
from proofmeet.services.meeting_service import register_meeting  # noqa: E402
from proofmeet.services.participant_service import enroll_participant  # noqa: E402

TEST_BASE_URL = "https://verify.example.test"

_email_counter = itertools.count(1)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def client():
    """
    TestClient over a fresh application and an empty schema.

    Uses the application factory so dependency overrides set by a test never
    leak into the next one.
    """
    reset_schema_sync()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def db_session():
    """
    Async session over a freshly reset schema.
    """
    await init_db()
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def issuer() -> CourtCardIssuer:
    return CourtCardIssuer(TEST_BASE_URL)


@pytest.fixture
def tracker(issuer: CourtCardIssuer) -> AttendanceTracker:
    return AttendanceTracker(issuer=issuer, minimum_fraction=0.5)


@pytest.fixture
def make_participant(db_session):
    async def _make(**overrides):
        data = {
            "full_name": "Jordan Doe",
            "email": f"participant{next(_email_counter)}@example.com",
            "case_number": "CR-2024-12345",
            "court_rep_id": "rep-001",
            "court_rep_name": "Officer Smith",
            "required_sessions": 3,
            "period_days": 7,
        }
        data.update(overrides)
        return await enroll_participant(
            db_session, ParticipantCreate(**data), default_period_days=7
        )

    return _make


@pytest.fixture
def make_meeting(db_session):
    async def _make(**overrides):
        data = {
            "topic": "Tuesday Night Recovery Group",
            "program": "AA",
            "scheduled_start": utc(2025, 11, 12, 10, 0),
            "planned_duration_minutes": 60,
        }
        data.update(overrides)
        return await register_meeting(db_session, MeetingCreate(**data))

    return _make


@pytest.fixture
def completed_attendance(db_session, tracker, make_participant, make_meeting):
    """
    Build a participant attending 45 of 60 planned minutes; returns (record, card).
    """

    async def _make(participant=None, meeting=None, join=None, leave=None):
        participant = participant or await make_participant()
        meeting = meeting or await make_meeting()
        join = join or utc(2025, 11, 12, 10, 0)
        leave = leave or utc(2025, 11, 12, 10, 45)
        record = await tracker.open_attendance(
            db_session,
            participant_id=participant.id,
            meeting_id=meeting.id,
            join_time=join,
        )
        return await tracker.close_attendance(db_session, record_id=record.id, leave_time=leave)

    return _make
