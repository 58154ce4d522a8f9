# proofmeet/api/routes/meetings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.api.dependencies.services import get_meeting_host
from proofmeet.core.config import Settings, get_settings
from proofmeet.db.session import get_db
from proofmeet.models.meeting import Meeting
from proofmeet.schemas.meeting import (
    CreateTestMeetingRequest,
    MeetingCreate,
    MeetingRead,
    MeetingSource,
)
from proofmeet.services import meeting_service
from proofmeet.services.zoom_client import MeetingHost

router = APIRouter(prefix="/meetings", tags=["Meetings"])


@router.post(
    "/test",
    response_model=MeetingRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a test meeting through the video host",
    description=(
        "Creates a scheduled meeting with the video-conferencing provider on "
        "behalf of a court representative and stores its join credentials.\n\n"
        "Provider credential problems return 502; a provider that does not answer "
        "within the configured timeout returns 503. Nothing is stored on failure."
    ),
    responses={
        502: {"description": "The video host rejected the request or the credentials."},
        503: {"description": "The video host timed out or is unavailable."},
    },
)
async def create_test_meeting(
    payload: CreateTestMeetingRequest,
    db: AsyncSession = Depends(get_db),
    host: MeetingHost = Depends(get_meeting_host),
    settings: Settings = Depends(get_settings),
) -> MeetingRead:
    meeting = await meeting_service.create_test_meeting(
        db,
        host=host,
        request=payload,
        timeout_seconds=settings.ZOOM_TIMEOUT_SECONDS,
    )
    return MeetingRead.model_validate(meeting)


@router.post(
    "",
    response_model=MeetingRead,
    status_code=HTTPStatus.CREATED,
    summary="Register an externally scheduled meeting",
)
async def register_meeting(
    payload: MeetingCreate,
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_service.register_meeting(db, payload)
    return MeetingRead.model_validate(meeting)


@router.get(
    "",
    response_model=list[MeetingRead],
    summary="List meetings",
)
async def list_meetings(
    source: MeetingSource | None = Query(default=None, description="Filter by meeting source."),
    include_cancelled: bool = Query(default=True),
    db: AsyncSession = Depends(get_db),
) -> list[MeetingRead]:
    stmt = select(Meeting)
    if source is not None:
        stmt = stmt.where(Meeting.source == source.value)
    if not include_cancelled:
        stmt = stmt.where(Meeting.is_cancelled.is_(False))

    result = await db.execute(stmt.order_by(Meeting.scheduled_start.asc(), Meeting.id.asc()))
    return [MeetingRead.model_validate(m) for m in result.scalars().all()]


@router.get(
    "/{meeting_id}",
    response_model=MeetingRead,
    summary="Get meeting by ID",
    responses={404: {"description": "No meeting exists with the given ID."}},
)
async def get_meeting(
    meeting_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_service.get_meeting(db, meeting_id)
    return MeetingRead.model_validate(meeting)


@router.post(
    "/{meeting_id}/cancel",
    response_model=MeetingRead,
    summary="Cancel a meeting",
    description="New attendance cannot be opened for a cancelled meeting.",
    responses={409: {"description": "The meeting is already cancelled."}},
)
async def cancel_meeting(
    meeting_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_service.cancel_meeting(db, meeting_id)
    return MeetingRead.model_validate(meeting)
