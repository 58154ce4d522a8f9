# proofmeet/api/routes/verification.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.config import Settings, get_settings
from proofmeet.db.session import get_db
from proofmeet.schemas.verification import VerificationResult
from proofmeet.services.verification_service import verify

router = APIRouter(prefix="/verify", tags=["Verification"])


@router.get(
    "/{card_id}",
    response_model=VerificationResult,
    summary="Publicly verify a court card",
    description=(
        "Unauthenticated endpoint behind the link and QR code printed on a court card.\n\n"
        "The card's sealed hash is recomputed from the attendance record on every call. "
        "A tampered card still answers 200, with `validation_status` = FAILED; "
        "an unknown card answers 404 and a malformed identifier 400.\n\n"
        "Each lookup bumps the card's `verification_count`; VERIFIED audit events are "
        "written at most once per `VERIFICATION_AUDIT_INTERVAL_MINUTES` unless the result changes."
    ),
    responses={
        400: {"description": "The identifier is not a well-formed card identifier."},
        404: {"description": "No court card exists with this identifier."},
    },
)
async def verify_court_card(
    card_id: str = Path(..., description="Court card identifier, e.g. CC-2025-000042-7F3A."),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> VerificationResult:
    return await verify(
        db,
        card_id,
        audit_interval_minutes=settings.VERIFICATION_AUDIT_INTERVAL_MINUTES,
    )
