# proofmeet/schemas/attendance.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AttendanceStatus(str, Enum):
    """
    Lifecycle of an attendance record.
    """

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class VerificationMethod(str, Enum):
    WEBCAM = "WEBCAM"
    SCREEN_ACTIVITY = "SCREEN_ACTIVITY"
    BOTH = "BOTH"


class AttendanceJoin(BaseModel):
    """
    Request body for recording a participant joining a meeting.
    """

    participant_id: int = Field(..., ge=1, examples=[1])
    meeting_id: int = Field(..., ge=1, examples=[1])
    join_time: datetime | None = Field(
        default=None,
        description="Join timestamp; the server's current UTC time when omitted.",
    )
    verification_method: VerificationMethod = Field(default=VerificationMethod.SCREEN_ACTIVITY)


class AttendanceLeave(BaseModel):
    """
    Request body for recording a participant leaving a meeting.
    """

    leave_time: datetime | None = Field(
        default=None,
        description="Leave timestamp; the server's current UTC time when omitted.",
    )
    idle_minutes: float | None = Field(
        default=None,
        ge=0,
        description=(
            "Idle minutes reported by an activity monitor. When omitted the "
            "whole span counts as active."
        ),
    )


class AttendanceRecordRead(BaseModel):
    """
    Public representation of an attendance record.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    participant_id: int
    meeting_id: int
    meeting_date: date
    join_time: datetime
    leave_time: datetime | None = None
    total_duration_minutes: float | None = None
    active_duration_minutes: float | None = None
    idle_duration_minutes: float | None = None
    attendance_percent: float | None = Field(
        default=None,
        description="Active duration divided by planned duration, in [0, 1]. COMPLETED only.",
    )
    status: AttendanceStatus
    verification_method: VerificationMethod


class AttendanceCloseResult(BaseModel):
    """
    Result of closing an attendance record: the closed record plus the court
    card identifier when the record completed.
    """

    record: AttendanceRecordRead
    court_card_id: str | None = None
    verification_url: str | None = None


class FinalizationFailure(BaseModel):
    record_id: int
    error: str


class FinalizationSummary(BaseModel):
    """
    Outcome of closing attendance records left open after their meeting ended.
    """

    as_of: datetime
    total: int = Field(..., description="Stale records found.")
    completed: int = 0
    abandoned: int = 0
    skipped: int = Field(default=0, description="Records closed by someone else meanwhile.")
    failed: int = 0
    failures: list[FinalizationFailure] = Field(default_factory=list)
