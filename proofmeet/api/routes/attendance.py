# proofmeet/api/routes/attendance.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.api.dependencies.services import get_attendance_tracker
from proofmeet.core.errors import NotFoundError
from proofmeet.core.timeutils import utcnow
from proofmeet.db.session import get_db
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.court_card import CourtCard
from proofmeet.schemas.attendance import (
    AttendanceCloseResult,
    AttendanceJoin,
    AttendanceLeave,
    AttendanceRecordRead,
)
from proofmeet.schemas.court_card import CourtCardRead
from proofmeet.services.attendance_tracker import (
    AttendanceTracker,
    full_presence,
    reported_idle,
)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.post(
    "/join",
    response_model=AttendanceRecordRead,
    status_code=HTTPStatus.CREATED,
    summary="Record a participant joining a meeting",
    description=(
        "Opens an IN_PROGRESS attendance record for the (participant, meeting) pair.\n\n"
        "At most one open record may exist per pair; a second join before leaving "
        "returns 409. Inactive participants and cancelled meetings are rejected."
    ),
    responses={
        404: {"description": "Unknown participant or meeting."},
        409: {"description": "An open record already exists, or the participant/meeting is not usable."},
    },
)
async def join_meeting(
    payload: AttendanceJoin,
    db: AsyncSession = Depends(get_db),
    tracker: AttendanceTracker = Depends(get_attendance_tracker),
) -> AttendanceRecordRead:
    record = await tracker.open_attendance(
        db,
        participant_id=payload.participant_id,
        meeting_id=payload.meeting_id,
        join_time=payload.join_time or utcnow(),
        verification_method=payload.verification_method,
    )
    return AttendanceRecordRead.model_validate(record)


@router.post(
    "/{record_id}/leave",
    response_model=AttendanceCloseResult,
    status_code=HTTPStatus.OK,
    summary="Record a participant leaving a meeting",
    description=(
        "Closes the attendance record, computing total/active/idle minutes and "
        "the attendance percentage against the meeting's planned duration.\n\n"
        "**Outcome:**\n"
        "- COMPLETED when active minutes reach the configured fraction of the "
        "planned duration; a court card is issued in the same transaction.\n"
        "- ABANDONED otherwise; no court card.\n\n"
        "Closing a record that is not IN_PROGRESS returns 409."
    ),
    responses={
        200: {
            "description": "Record closed.",
            "content": {
                "application/json": {
                    "example": {
                        "record": {
                            "id": 7,
                            "participant_id": 1,
                            "meeting_id": 3,
                            "meeting_date": "2025-11-14",
                            "join_time": "2025-11-14T10:00:00Z",
                            "leave_time": "2025-11-14T10:45:00Z",
                            "total_duration_minutes": 45.0,
                            "active_duration_minutes": 45.0,
                            "idle_duration_minutes": 0.0,
                            "attendance_percent": 0.75,
                            "status": "COMPLETED",
                            "verification_method": "SCREEN_ACTIVITY",
                        },
                        "court_card_id": "CC-2025-000042-7F3A",
                        "verification_url": "https://verify.example.org/verify/CC-2025-000042-7F3A",
                    }
                }
            },
        },
        400: {"description": "Leave time precedes join time."},
        404: {"description": "Unknown attendance record."},
        409: {"description": "The record is already closed."},
    },
)
async def leave_meeting(
    payload: AttendanceLeave,
    record_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
    tracker: AttendanceTracker = Depends(get_attendance_tracker),
) -> AttendanceCloseResult:
    signal = full_presence if payload.idle_minutes is None else reported_idle(payload.idle_minutes)
    record, card = await tracker.close_attendance(
        db,
        record_id=record_id,
        leave_time=payload.leave_time or utcnow(),
        activity_signal=signal,
    )
    return AttendanceCloseResult(
        record=AttendanceRecordRead.model_validate(record),
        court_card_id=card.id if card else None,
        verification_url=card.verification_url if card else None,
    )


@router.get(
    "/{record_id}",
    response_model=AttendanceRecordRead,
    summary="Get attendance record by ID",
)
async def get_attendance_record(
    record_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> AttendanceRecordRead:
    result = await db.execute(select(AttendanceRecord).where(AttendanceRecord.id == record_id))
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"Attendance record with id={record_id} not found")
    return AttendanceRecordRead.model_validate(record)


@router.get(
    "/{record_id}/court-card",
    response_model=CourtCardRead,
    summary="Get the court card issued for an attendance record",
    responses={404: {"description": "The record does not exist or has no court card."}},
)
async def get_record_court_card(
    record_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> CourtCardRead:
    result = await db.execute(
        select(CourtCard).where(CourtCard.attendance_record_id == record_id)
    )
    card = result.scalar_one_or_none()
    if card is None:
        raise NotFoundError(f"No court card issued for attendance record {record_id}")
    return CourtCardRead.model_validate(card)
