# proofmeet/services/meeting_service.py
from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import HostUnavailableError, InvalidStateError, NotFoundError
from proofmeet.core.timeutils import ensure_utc
from proofmeet.models.meeting import Meeting
from proofmeet.schemas.meeting import (
    CreateTestMeetingRequest,
    MeetingCreate,
    MeetingHostOptions,
    MeetingSource,
)
from proofmeet.services.zoom_client import MeetingHost

logger = logging.getLogger(__name__)


async def create_test_meeting(
    db: AsyncSession,
    host: MeetingHost,
    request: CreateTestMeetingRequest,
    timeout_seconds: float,
) -> Meeting:
    """
    Create a test meeting through the video host and persist it.

    The host call is bounded by `timeout_seconds`; running out of budget
    surfaces as HostUnavailableError instead of hanging the request.
    Nothing is persisted when the host call fails.
    """
    options = MeetingHostOptions(
        topic=request.topic or f"Test Compliance Meeting - {request.court_rep_name}",
        duration_minutes=request.duration_minutes,
        start_delay_minutes=request.start_delay_minutes,
        recording_enabled=request.recording_enabled,
        waiting_room=request.waiting_room,
    )

    try:
        hosted = await asyncio.wait_for(host.create_meeting(options), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise HostUnavailableError(
            f"Meeting host did not respond within {timeout_seconds:g}s"
        ) from exc

    meeting = Meeting(
        source=MeetingSource.TEST.value,
        topic=options.topic,
        program="TEST",
        scheduled_start=ensure_utc(hosted.start_time),
        planned_duration_minutes=options.duration_minutes,
        external_id=hosted.external_id,
        join_url=hosted.join_url,
        password=hosted.password,
        created_by=request.court_rep_id,
        is_cancelled=False,
    )
    db.add(meeting)
    await db.commit()
    await db.refresh(meeting)

    logger.info(
        "Test meeting %s created for court rep %s (external id %s)",
        meeting.id,
        request.court_rep_id,
        hosted.external_id,
    )
    return meeting


async def register_meeting(db: AsyncSession, payload: MeetingCreate) -> Meeting:
    """
    Store an externally scheduled meeting.
    """
    meeting = Meeting(
        source=MeetingSource.EXTERNAL.value,
        topic=payload.topic,
        program=payload.program,
        scheduled_start=ensure_utc(payload.scheduled_start),
        planned_duration_minutes=payload.planned_duration_minutes,
        external_id=payload.external_id,
        join_url=payload.join_url,
        password=payload.password,
        is_cancelled=False,
    )
    db.add(meeting)
    await db.commit()
    await db.refresh(meeting)
    return meeting


async def get_meeting(db: AsyncSession, meeting_id: int) -> Meeting:
    result = await db.execute(select(Meeting).where(Meeting.id == meeting_id))
    meeting = result.scalar_one_or_none()
    if meeting is None:
        raise NotFoundError(f"Meeting with id={meeting_id} not found")
    return meeting


async def cancel_meeting(db: AsyncSession, meeting_id: int) -> Meeting:
    """
    Flag a meeting as cancelled. Cancelling twice is an InvalidStateError.
    """
    meeting = await get_meeting(db, meeting_id)
    if meeting.is_cancelled:
        raise InvalidStateError(f"Meeting with id={meeting_id} is already cancelled")

    meeting.is_cancelled = True
    await db.commit()
    await db.refresh(meeting)

    logger.info("Meeting %s cancelled", meeting_id)
    return meeting
