# proofmeet/schemas/participant.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ParticipantCreate(BaseModel):
    """
    Enrollment payload for a new participant.

    The compliance window (`required_sessions` per `period_days`) is fixed at
    enrollment. `period_days` falls back to the configured default when omitted.
    """

    full_name: str = Field(
        ...,
        min_length=1,
        description="Participant's full name.",
        examples=["Jordan Doe"],
    )
    email: EmailStr = Field(
        ...,
        description="Unique contact email of the participant.",
        examples=["jordan.doe@example.com"],
    )
    case_number: str | None = Field(
        default=None,
        description="Court case number the attendance requirement belongs to.",
        examples=["CR-2024-12345"],
    )
    court_rep_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the supervising court representative.",
        examples=["rep-001"],
    )
    court_rep_name: str | None = Field(default=None, examples=["Officer Smith"])
    court_rep_email: EmailStr | None = Field(default=None, examples=["smith@court.gov"])
    required_sessions: int = Field(
        ...,
        ge=0,
        description="Number of COMPLETED sessions required per compliance period.",
        examples=[3],
    )
    period_days: int | None = Field(
        default=None,
        ge=1,
        description="Length of the compliance period in days (7 = ISO week).",
        examples=[7],
    )


class CourtRepAssignment(BaseModel):
    """
    Payload for moving a participant to another court representative.
    """

    court_rep_id: str = Field(..., min_length=1, examples=["rep-002"])
    court_rep_name: str | None = Field(default=None)
    court_rep_email: EmailStr | None = Field(default=None)


class ParticipantRead(BaseModel):
    """
    Public representation of a participant.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., examples=[1])
    full_name: str
    email: str
    case_number: str | None = None
    court_rep_id: str
    court_rep_name: str | None = None
    court_rep_email: str | None = None
    required_sessions: int
    period_days: int
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
