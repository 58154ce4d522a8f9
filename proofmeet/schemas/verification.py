# proofmeet/schemas/verification.py
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from proofmeet.schemas.court_card import CardAuditEventRead, CardValidationStatus


class VerificationResult(BaseModel):
    """
    Public verification view of a court card, as shown to courts and officials
    scanning the card's QR code.
    """

    card_id: str = Field(..., examples=["CC-2025-000042-7F3A"])
    validation_status: CardValidationStatus = Field(
        ...,
        description=(
            "PASSED when the sealed hash matches the attendance record right "
            "now; FAILED when it does not (tampering or corruption)."
        ),
    )
    participant_name: str | None = None
    case_number: str | None = None
    court_rep_name: str | None = None
    meeting_topic: str | None = None
    meeting_date: date | None = None
    join_time: datetime | None = None
    leave_time: datetime | None = None
    total_duration_minutes: float | None = None
    active_duration_minutes: float | None = None
    attendance_percent: float | None = None
    verification_url: str
    issued_at: datetime
    reissue_count: int
    verification_count: int = Field(default=0, description="Number of public lookups of this card.")
    reissue_history: list[CardAuditEventRead] = Field(default_factory=list)
