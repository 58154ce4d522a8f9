# proofmeet/api/routes/internal.py
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Body, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.api.dependencies.internal_auth import verify_internal_api_key
from proofmeet.api.dependencies.services import get_attendance_tracker, get_card_issuer
from proofmeet.core.config import Settings, get_settings
from proofmeet.db.session import get_db
from proofmeet.schemas.attendance import FinalizationSummary
from proofmeet.schemas.court_card import (
    CourtCardRead,
    RegenerationRequest,
    RegenerationSummary,
    ReissueOutcome,
)
from proofmeet.services.attendance_finalizer import finalize_stale_attendance
from proofmeet.services.attendance_tracker import AttendanceTracker
from proofmeet.services.card_regeneration import regenerate_cards
from proofmeet.services.court_card_issuer import CourtCardIssuer

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/regenerate-cards",
    response_model=RegenerationSummary,
    status_code=HTTPStatus.OK,
    summary="Reissue court cards against the current verification base URL",
    description=(
        "Internal-only endpoint intended for operators after the verification "
        "site moves.\n\n"
        "**Behavior:**\n"
        "- Every card (or only `card_ids` when given) gets its verification URL "
        "and QR payload rebuilt from `VERIFICATION_BASE_URL`.\n"
        "- Card identifiers and sealed hashes are never changed.\n"
        "- Cards already up to date are counted as `unchanged`; running the batch "
        "twice is harmless.\n"
        "- A failing card is reported in `failures` and does not stop the batch."
    ),
    responses={
        200: {
            "description": "Batch finished. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "total": 3,
                        "reissued": 2,
                        "unchanged": 0,
                        "failed": 1,
                        "failures": [
                            {
                                "card_id": "CC-2025-000099-0000",
                                "error": "Court card CC-2025-000099-0000 not found",
                            }
                        ],
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
    },
)
async def trigger_card_regeneration(
    payload: RegenerationRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
    issuer: CourtCardIssuer = Depends(get_card_issuer),
) -> RegenerationSummary:
    """
    Run the reissue batch synchronously and return its summary.
    """
    card_ids = payload.card_ids if payload is not None else None
    return await regenerate_cards(db, issuer, card_ids=card_ids)


@router.post(
    "/court-cards/{card_id}/reissue",
    response_model=ReissueOutcome,
    status_code=HTTPStatus.OK,
    summary="Reissue a single court card",
    responses={
        401: {"description": "Missing or invalid internal API key (if configured)."},
        404: {"description": "No court card exists with this identifier."},
    },
)
async def reissue_court_card(
    card_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    issuer: CourtCardIssuer = Depends(get_card_issuer),
) -> ReissueOutcome:
    card, changed = await issuer.reissue(db, card_id)
    return ReissueOutcome(card=CourtCardRead.model_validate(card), changed=changed)


@router.post(
    "/finalize-stale-attendance",
    response_model=FinalizationSummary,
    status_code=HTTPStatus.OK,
    summary="Close attendance records left open after their meeting ended",
    description=(
        "Internal-only endpoint intended for a scheduler (cron, k8s CronJob).\n\n"
        "**Behavior:**\n"
        "- Finds IN_PROGRESS records whose meeting ended more than "
        "`STALE_ATTENDANCE_GRACE_MINUTES` before `as_of` (default: now).\n"
        "- Closes each at the meeting's scheduled end through the regular leave "
        "path, so the completion rule applies and completed records get a court card.\n"
        "- Records closed concurrently count as `skipped`; other failures are reported "
        "in `failures` and do not stop the batch.\n"
        "- Running it again finds nothing left to close."
    ),
    responses={
        200: {
            "description": "Batch finished. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "as_of": "2025-11-12T12:00:00Z",
                        "total": 2,
                        "completed": 1,
                        "abandoned": 1,
                        "skipped": 0,
                        "failed": 0,
                        "failures": [],
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
    },
)
async def trigger_stale_attendance_finalization(
    as_of: datetime | None = Query(
        default=None,
        description="Reference time; the server's current UTC time when omitted.",
    ),
    db: AsyncSession = Depends(get_db),
    tracker: AttendanceTracker = Depends(get_attendance_tracker),
    settings: Settings = Depends(get_settings),
) -> FinalizationSummary:
    return await finalize_stale_attendance(
        db,
        tracker,
        now=as_of,
        grace_minutes=settings.STALE_ATTENDANCE_GRACE_MINUTES,
    )
