# proofmeet/schemas/compliance.py
from datetime import date

from pydantic import BaseModel, Field


class ComplianceSnapshot(BaseModel):
    """
    Compliance of one participant over one period.

    Derived on demand from attendance history; never stored.
    """

    participant_id: int = Field(..., examples=[1])
    period_start: date = Field(
        ...,
        description="First day (inclusive) of the compliance period.",
        examples=["2025-11-10"],
    )
    period_end: date = Field(
        ...,
        description="Last day (inclusive) of the compliance period.",
        examples=["2025-11-16"],
    )
    required_sessions: int = Field(..., examples=[3])
    completed_count: int = Field(
        ...,
        description="COMPLETED records whose meeting date falls in the period.",
        examples=[2],
    )
    total_active_minutes: float = Field(..., examples=[105.0])
    average_attendance_percent: float = Field(
        ...,
        description="Mean attendance percent of the counted records (0.0 when none).",
        examples=[0.875],
    )
    meets_requirement: bool = Field(..., examples=[False])


class ComplianceHistory(BaseModel):
    participant_id: int
    snapshots: list[ComplianceSnapshot] = Field(
        ...,
        description="One snapshot per period, newest first.",
    )


class CourtRepParticipantRow(BaseModel):
    """
    One row of a court representative's participant table.
    """

    participant_id: int
    full_name: str
    case_number: str | None = None
    current: ComplianceSnapshot


class CourtRepOverview(BaseModel):
    court_rep_id: str
    participants: list[CourtRepParticipantRow]
    compliant_count: int
    non_compliant_count: int
