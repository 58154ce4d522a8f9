# proofmeet/schemas/meeting.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MeetingSource(str, Enum):
    """
    Where a meeting came from.
    """

    TEST = "TEST"
    EXTERNAL = "EXTERNAL"


class MeetingHostOptions(BaseModel):
    """
    Options passed to the video host when creating a meeting.
    """

    topic: str = Field(..., examples=["Test Compliance Meeting - Officer Smith"])
    duration_minutes: int = Field(..., gt=0, le=24 * 60, examples=[30])
    start_delay_minutes: int = Field(
        default=2,
        ge=0,
        description="Minutes from now until the meeting is scheduled to start.",
    )
    recording_enabled: bool = Field(default=True)
    waiting_room: bool = Field(default=False)


class HostedMeeting(BaseModel):
    """
    Joinable credentials returned by the video host for a created meeting.
    """

    external_id: str = Field(..., examples=["85746352413"])
    join_url: str = Field(..., examples=["https://zoom.us/j/85746352413?pwd=abc"])
    password: str | None = Field(default=None, examples=["482913"])
    start_time: datetime


class CreateTestMeetingRequest(BaseModel):
    """
    Request body for creating a test meeting on behalf of a court representative.
    """

    court_rep_id: str = Field(..., min_length=1, examples=["rep-001"])
    court_rep_name: str = Field(..., min_length=1, examples=["Officer Smith"])
    topic: str | None = Field(
        default=None,
        description="Custom topic; defaults to 'Test Compliance Meeting - <rep name>'.",
    )
    duration_minutes: int = Field(default=30, gt=0, le=24 * 60)
    start_delay_minutes: int = Field(default=2, ge=0)
    recording_enabled: bool = Field(default=True)
    waiting_room: bool = Field(default=False)


class MeetingCreate(BaseModel):
    """
    Request body for registering an externally scheduled meeting.
    """

    topic: str = Field(..., min_length=1, examples=["Tuesday Night Recovery Group"])
    program: str | None = Field(default=None, examples=["AA"])
    scheduled_start: datetime
    planned_duration_minutes: int = Field(..., gt=0, le=24 * 60, examples=[60])
    external_id: str | None = None
    join_url: str | None = None
    password: str | None = None


class MeetingRead(BaseModel):
    """
    Public representation of a meeting.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    source: MeetingSource
    topic: str
    program: str | None = None
    scheduled_start: datetime
    planned_duration_minutes: int
    external_id: str | None = None
    join_url: str | None = None
    password: str | None = None
    created_by: str | None = None
    is_cancelled: bool
    created_at: datetime | None = None
