# proofmeet/schemas/court_card.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CardValidationStatus(str, Enum):
    """
    Validation state of a court card.

    PENDING is the storage default before issuance seals the card; issued
    cards are PASSED until a verification detects a hash mismatch.
    """

    PASSED = "PASSED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class CardAuditAction(str, Enum):
    ISSUED = "ISSUED"
    REISSUED = "REISSUED"
    VERIFIED = "VERIFIED"
    TAMPERING_DETECTED = "TAMPERING_DETECTED"


class CourtCardRead(BaseModel):
    """
    Public representation of a court card.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., examples=["CC-2025-000042-7F3A"])
    attendance_record_id: int
    issued_at: datetime
    card_hash: str
    verification_url: str = Field(..., examples=["https://verify.example.org/verify/CC-2025-000042-7F3A"])
    qr_payload: str
    validation_status: CardValidationStatus
    reissue_count: int
    last_reissued_at: datetime | None = None
    verification_count: int = 0
    last_verified_at: datetime | None = None


class CardAuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: CardAuditAction
    occurred_at: datetime
    details: str | None = None


class ReissueOutcome(BaseModel):
    """
    Result of reissuing one card.
    """

    card: CourtCardRead
    changed: bool = Field(
        ...,
        description="False when the card already matched the current configuration.",
    )


class RegenerationRequest(BaseModel):
    card_ids: list[str] | None = Field(
        default=None,
        description="Cards to regenerate; all cards when omitted.",
    )


class RegenerationFailure(BaseModel):
    card_id: str
    error: str


class RegenerationSummary(BaseModel):
    """
    Summary payload returned by the /internal/regenerate-cards endpoint.
    """

    total: int = Field(..., examples=[12])
    reissued: int = Field(..., description="Cards whose URL/payload changed.", examples=[10])
    unchanged: int = Field(..., description="Cards already up to date.", examples=[1])
    failed: int = Field(..., examples=[1])
    failures: list[RegenerationFailure] = Field(default_factory=list)
