# tests/test_meeting_service.py
import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from proofmeet.core.errors import AuthError, HostUnavailableError, InvalidStateError, NotFoundError
from proofmeet.models.meeting import Meeting
from proofmeet.schemas.meeting import CreateTestMeetingRequest, HostedMeeting, MeetingHostOptions
from proofmeet.services.meeting_service import cancel_meeting, create_test_meeting, get_meeting


class _FakeHost:
    def __init__(self) -> None:
        self.calls: list[MeetingHostOptions] = []

    async def create_meeting(self, options: MeetingHostOptions) -> HostedMeeting:
        self.calls.append(options)
        return HostedMeeting(
            external_id="85746352413",
            join_url="https://zoom.us/j/85746352413?pwd=abc",
            password="482913",
            start_time=datetime(2025, 11, 12, 10, 2, tzinfo=timezone.utc),
        )


class _SlowHost:
    async def create_meeting(self, options: MeetingHostOptions) -> HostedMeeting:
        await asyncio.sleep(5)
        raise AssertionError("should have timed out")


class _RejectingHost:
    async def create_meeting(self, options: MeetingHostOptions) -> HostedMeeting:
        raise AuthError("Zoom rejected the client credentials")


def _request(**overrides) -> CreateTestMeetingRequest:
    data = {"court_rep_id": "rep-001", "court_rep_name": "Officer Smith", "duration_minutes": 30}
    data.update(overrides)
    return CreateTestMeetingRequest(**data)


async def _meeting_count(db) -> int:
    return (await db.execute(select(func.count(Meeting.id)))).scalar_one()


@pytest.mark.asyncio
async def test_create_test_meeting_persists_host_credentials(db_session):
    host = _FakeHost()

    meeting = await create_test_meeting(db_session, host=host, request=_request(), timeout_seconds=5)

    assert host.calls[0].topic == "Test Compliance Meeting - Officer Smith"
    assert host.calls[0].duration_minutes == 30
    assert meeting.id is not None
    assert meeting.source == "TEST"
    assert meeting.program == "TEST"
    assert meeting.external_id == "85746352413"
    assert meeting.join_url.startswith("https://zoom.us/j/")
    assert meeting.password == "482913"
    assert meeting.planned_duration_minutes == 30
    assert meeting.created_by == "rep-001"


@pytest.mark.asyncio
async def test_custom_topic_is_passed_through(db_session):
    host = _FakeHost()

    meeting = await create_test_meeting(
        db_session, host=host, request=_request(topic="Officer Smith dry run"), timeout_seconds=5
    )

    assert meeting.topic == "Officer Smith dry run"


@pytest.mark.asyncio
async def test_slow_host_times_out_as_unavailable(db_session):
    with pytest.raises(HostUnavailableError):
        await create_test_meeting(
            db_session, host=_SlowHost(), request=_request(), timeout_seconds=0.05
        )

    assert await _meeting_count(db_session) == 0


@pytest.mark.asyncio
async def test_host_auth_failure_propagates_and_stores_nothing(db_session):
    with pytest.raises(AuthError):
        await create_test_meeting(
            db_session, host=_RejectingHost(), request=_request(), timeout_seconds=5
        )

    assert await _meeting_count(db_session) == 0


@pytest.mark.asyncio
async def test_cancel_meeting_once(db_session, make_meeting):
    meeting = await make_meeting()

    cancelled = await cancel_meeting(db_session, meeting.id)
    assert cancelled.is_cancelled is True

    with pytest.raises(InvalidStateError):
        await cancel_meeting(db_session, meeting.id)


@pytest.mark.asyncio
async def test_get_unknown_meeting(db_session):
    with pytest.raises(NotFoundError):
        await get_meeting(db_session, 31337)
