# tests/test_attendance_finalizer.py
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from proofmeet.core.errors import InvalidInputError, InvalidStateError
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.court_card import CourtCard
from proofmeet.services.attendance_finalizer import finalize_stale_attendance


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def _open(db, tracker, participant, meeting, join):
    record = await tracker.open_attendance(
        db,
        participant_id=participant.id,
        meeting_id=meeting.id,
        join_time=join,
    )
    return record.id


async def _status(db, record_id):
    return (
        await db.execute(select(AttendanceRecord.status).where(AttendanceRecord.id == record_id))
    ).scalar_one()


@pytest.mark.asyncio
async def test_open_records_of_ended_meetings_are_closed_at_scheduled_end(
    db_session, tracker, make_participant, make_meeting
):
    """
    Meeting 10:00-11:00: the full-time attendee completes and gets a card,
    the late joiner is abandoned, and a meeting still running is left alone.
    """
    ended = await make_meeting()
    running = await make_meeting(scheduled_start=_utc(2025, 11, 12, 11, 30))

    stayed = await _open(db_session, tracker, await make_participant(), ended, _utc(2025, 11, 12, 10, 0))
    late = await _open(db_session, tracker, await make_participant(), ended, _utc(2025, 11, 12, 10, 50))
    ongoing = await _open(db_session, tracker, await make_participant(), running, _utc(2025, 11, 12, 11, 30))

    summary = await finalize_stale_attendance(db_session, tracker, now=_utc(2025, 11, 12, 12, 0))

    assert summary.total == 2
    assert summary.completed == 1
    assert summary.abandoned == 1
    assert summary.failed == 0

    completed = (
        await db_session.execute(select(AttendanceRecord).where(AttendanceRecord.id == stayed))
    ).scalar_one()
    assert completed.status == "COMPLETED"
    assert completed.total_duration_minutes == pytest.approx(60.0)
    assert completed.attendance_percent == pytest.approx(1.0)

    card = (
        await db_session.execute(select(CourtCard).where(CourtCard.attendance_record_id == stayed))
    ).scalar_one_or_none()
    assert card is not None

    assert await _status(db_session, late) == "ABANDONED"
    assert await _status(db_session, ongoing) == "IN_PROGRESS"

    again = await finalize_stale_attendance(db_session, tracker, now=_utc(2025, 11, 12, 12, 0))
    assert again.total == 0


@pytest.mark.asyncio
async def test_grace_period_delays_finalization(db_session, tracker, make_participant, make_meeting):
    meeting = await make_meeting()
    record_id = await _open(db_session, tracker, await make_participant(), meeting, _utc(2025, 11, 12, 10, 0))

    early = await finalize_stale_attendance(
        db_session, tracker, now=_utc(2025, 11, 12, 11, 10), grace_minutes=15
    )
    assert early.total == 0
    assert await _status(db_session, record_id) == "IN_PROGRESS"

    later = await finalize_stale_attendance(
        db_session, tracker, now=_utc(2025, 11, 12, 11, 20), grace_minutes=15
    )
    assert later.completed == 1


@pytest.mark.asyncio
async def test_participant_can_rejoin_after_stale_record_is_finalized(
    db_session, tracker, make_participant, make_meeting
):
    participant = await make_participant()
    meeting = await make_meeting()
    await _open(db_session, tracker, participant, meeting, _utc(2025, 11, 12, 10, 0))

    await finalize_stale_attendance(db_session, tracker, now=_utc(2025, 11, 12, 12, 0))

    rejoined = await _open(db_session, tracker, participant, meeting, _utc(2025, 11, 12, 12, 5))
    assert await _status(db_session, rejoined) == "IN_PROGRESS"


@pytest.mark.asyncio
async def test_failing_record_does_not_stop_the_batch(
    db_session, tracker, make_participant, make_meeting, monkeypatch
):
    meeting = await make_meeting()
    broken = await _open(db_session, tracker, await make_participant(), meeting, _utc(2025, 11, 12, 10, 0))
    raced = await _open(db_session, tracker, await make_participant(), meeting, _utc(2025, 11, 12, 10, 1))
    healthy = await _open(db_session, tracker, await make_participant(), meeting, _utc(2025, 11, 12, 10, 2))

    original_close = tracker.close_attendance

    async def _close(db, record_id, leave_time, **kwargs):
        if record_id == broken:
            raise InvalidInputError("Meeting has no positive planned duration")
        if record_id == raced:
            raise InvalidStateError(f"Attendance record {record_id} was closed concurrently")
        return await original_close(db, record_id=record_id, leave_time=leave_time, **kwargs)

    monkeypatch.setattr(tracker, "close_attendance", _close)

    summary = await finalize_stale_attendance(db_session, tracker, now=_utc(2025, 11, 12, 12, 0))

    assert summary.total == 3
    assert summary.completed == 1
    assert summary.skipped == 1
    assert summary.failed == 1
    assert summary.failures[0].record_id == broken
    assert "planned duration" in summary.failures[0].error
    assert await _status(db_session, healthy) == "COMPLETED"
