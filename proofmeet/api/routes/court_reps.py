# proofmeet/api/routes/court_reps.py
from datetime import datetime

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.timeutils import utcnow
from proofmeet.db.session import get_db
from proofmeet.schemas.compliance import CourtRepOverview
from proofmeet.services.compliance_evaluator import build_court_rep_overview

router = APIRouter(prefix="/court-reps", tags=["Court Representatives"])


@router.get(
    "/{court_rep_id}/overview",
    response_model=CourtRepOverview,
    summary="Current-period compliance for a court representative's participants",
    description=(
        "One row per active participant supervised by the court representative, "
        "each with the compliance snapshot of the period containing `as_of`.\n\n"
        "Participants without any attendance still appear, with zero counts."
    ),
)
async def get_court_rep_overview(
    court_rep_id: str = Path(..., min_length=1),
    as_of: datetime | None = Query(default=None, description="Reference time (ISO 8601)."),
    db: AsyncSession = Depends(get_db),
) -> CourtRepOverview:
    return await build_court_rep_overview(db, court_rep_id=court_rep_id, as_of=as_of or utcnow())
