# proofmeet/services/card_regeneration.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from proofmeet.core.errors import ProofMeetError
from proofmeet.models.court_card import CourtCard
from proofmeet.schemas.court_card import RegenerationFailure, RegenerationSummary
from proofmeet.services.court_card_issuer import CourtCardIssuer

logger = logging.getLogger(__name__)


async def regenerate_cards(
    db: AsyncSession,
    issuer: CourtCardIssuer,
    card_ids: Optional[Sequence[str]] = None,
) -> RegenerationSummary:
    """
    Reissue a batch of court cards against the current configuration.

    Behavior
    --------
    - `card_ids` omitted: every stored card is processed, oldest first.
    - Each card is reissued in its own transaction; a failing card is rolled
      back, reported in `failures` and the batch moves on.
    - Cards already matching the configuration count as `unchanged`, so the
      batch is safe to run repeatedly.
    """
    if card_ids is None:
        result = await db.execute(select(CourtCard.id).order_by(CourtCard.issued_at, CourtCard.id))
        targets: List[str] = list(result.scalars().all())
    else:
        # Keep caller order, drop duplicates.
        targets = list(dict.fromkeys(card_ids))

    reissued = 0
    unchanged = 0
    failures: List[RegenerationFailure] = []

    for card_id in targets:
        try:
            _, changed = await issuer.reissue(db, card_id)
        except (ProofMeetError, SQLAlchemyError) as exc:
            await db.rollback()
            logger.warning("Failed to regenerate court card %s: %s", card_id, exc)
            failures.append(RegenerationFailure(card_id=card_id, error=str(exc)))
            continue

        if changed:
            reissued += 1
        else:
            unchanged += 1

    logger.info(
        "Court card regeneration finished: %d total, %d reissued, %d unchanged, %d failed",
        len(targets),
        reissued,
        unchanged,
        len(failures),
    )
    return RegenerationSummary(
        total=len(targets),
        reissued=reissued,
        unchanged=unchanged,
        failed=len(failures),
        failures=failures,
    )
