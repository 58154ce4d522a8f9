# proofmeet/services/court_card_issuer.py
from __future__ import annotations

import hashlib
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from proofmeet.core.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from proofmeet.core.locks import KeyedLock
from proofmeet.core.timeutils import ensure_utc, utcnow
from proofmeet.models.attendance_record import AttendanceRecord
from proofmeet.models.court_card import CardAuditEvent, CardSequence, CourtCard
from proofmeet.schemas.attendance import AttendanceStatus
from proofmeet.schemas.court_card import CardAuditAction, CardValidationStatus

logger = logging.getLogger(__name__)

CARD_ID_PATTERN = re.compile(r"^CC-(\d{4})-(\d{6,})-([0-9A-F]{4})$")

QR_SYSTEM = "ProofMeet"
QR_VERSION = "2.0"

# Serial collisions only happen when stored cards drift from the counter.
CARD_ID_ATTEMPTS = 5


def _checksum(serial: str) -> str:
    return hashlib.sha256(serial.encode("utf-8")).hexdigest()[:4].upper()


def format_card_id(year: int, sequence: int) -> str:
    """
    Build a card identifier: CC-<year>-<sequence>-<4 hex checksum>.

    The sequence is zero-padded to six digits and simply grows wider past
    999999. Example: CC-2025-000042-7F3A
    """
    serial = f"CC-{year:04d}-{sequence:06d}"
    return f"{serial}-{_checksum(serial)}"


def is_well_formed_card_id(card_id: str) -> bool:
    """
    True if `card_id` has the card serial shape and a matching checksum.

    Lets the public endpoint reject typos without touching the database.
    """
    match = CARD_ID_PATTERN.match(card_id)
    if match is None:
        return False
    serial = f"CC-{match.group(1)}-{match.group(2)}"
    return _checksum(serial) == match.group(3)


def _fmt_minutes(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{float(value):.4f}"


def _fmt_time(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else ensure_utc(value).isoformat()


def compute_card_hash(record: AttendanceRecord) -> str:
    """
    SHA-256 over the immutable fields of a closed attendance record.

    Numbers are rendered with fixed precision and timestamps normalized to
    UTC so the digest is stable across database round trips.
    """
    fields: Dict[str, Any] = {
        "attendance_record_id": record.id,
        "participant_id": record.participant_id,
        "meeting_id": record.meeting_id,
        "meeting_date": record.meeting_date.isoformat() if record.meeting_date else None,
        "join_time": _fmt_time(record.join_time),
        "leave_time": _fmt_time(record.leave_time),
        "total_duration_minutes": _fmt_minutes(record.total_duration_minutes),
        "active_duration_minutes": _fmt_minutes(record.active_duration_minutes),
        "idle_duration_minutes": _fmt_minutes(record.idle_duration_minutes),
        "attendance_percent": _fmt_minutes(record.attendance_percent),
        "status": record.status,
        "verification_method": record.verification_method,
    }
    canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _validate_base_url(base_url: Optional[str]) -> str:
    if not base_url or not base_url.strip():
        raise ConfigurationError(
            "VERIFICATION_BASE_URL is not configured; court cards cannot be issued "
            "without a real verification destination."
        )
    cleaned = base_url.strip().rstrip("/")
    parsed = urlparse(cleaned)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            f"VERIFICATION_BASE_URL must be an absolute http(s) URL, got {base_url!r}"
        )
    return cleaned


class CourtCardIssuer:
    """
    Issues and reissues court cards for completed attendance records.

    The verification base URL is validated when the issuer is constructed,
    which happens once at application startup, so a missing or malformed
    value stops the service from starting instead of producing cards that
    point nowhere.
    """

    def __init__(self, base_url: Optional[str]) -> None:
        self.base_url = _validate_base_url(base_url)
        self._reissue_locks = KeyedLock()

    def verification_url_for(self, card_id: str) -> str:
        return f"{self.base_url}/verify/{card_id}"

    def qr_payload_for(self, card_id: str, card_hash: str) -> str:
        """
        Data a QR code on the printed card carries: the verification URL plus
        the sealed hash for offline comparison.
        """
        return json.dumps(
            {
                "url": self.verification_url_for(card_id),
                "cardId": card_id,
                "hash": card_hash,
                "system": QR_SYSTEM,
                "version": QR_VERSION,
            },
            sort_keys=True,
        )

    async def _locked_counter(self, db: AsyncSession, year: int) -> Optional[CardSequence]:
        result = await db.execute(
            select(CardSequence)
            .where(CardSequence.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _highest_issued_sequence(self, db: AsyncSession, year: int) -> int:
        """
        Largest serial already used for `year`, compared numerically.
        """
        result = await db.execute(
            select(CourtCard.id).where(CourtCard.id.like(f"CC-{year:04d}-%"))
        )
        highest = 0
        for card_id in result.scalars():
            match = CARD_ID_PATTERN.match(card_id)
            if match is not None:
                highest = max(highest, int(match.group(2)))
        return highest

    async def _allocate_sequence(self, db: AsyncSession, year: int) -> int:
        """
        Take the next serial for `year` from its counter row.

        The row stays locked until the caller's transaction ends, which
        serializes issuers on Postgres. The first card of a year creates the
        row, seeded from any cards already stored for that year.
        """
        counter = await self._locked_counter(db, year)
        if counter is None:
            seed = await self._highest_issued_sequence(db, year)
            try:
                async with db.begin_nested():
                    db.add(CardSequence(year=year, last_value=seed))
            except IntegrityError:
                logger.info("Card counter for %s was created concurrently", year)
            counter = await self._locked_counter(db, year)
            if counter is None:
                raise ConflictError(f"Card counter for {year} could not be created")

        counter.last_value += 1
        await db.flush()
        return counter.last_value

    async def _insert_card(
        self,
        db: AsyncSession,
        record: AttendanceRecord,
        issued_at: datetime,
        card_hash: str,
    ) -> CourtCard:
        card_id = format_card_id(issued_at.year, await self._allocate_sequence(db, issued_at.year))
        card = CourtCard(
            id=card_id,
            attendance_record_id=record.id,
            issued_at=issued_at,
            card_hash=card_hash,
            base_url=self.base_url,
            verification_url=self.verification_url_for(card_id),
            qr_payload=self.qr_payload_for(card_id, card_hash),
            validation_status=CardValidationStatus.PASSED.value,
            reissue_count=0,
            verification_count=0,
        )
        # A savepoint keeps a clashing insert from poisoning the caller's transaction.
        async with db.begin_nested():
            db.add(card)
            db.add(
                CardAuditEvent(
                    card_id=card_id,
                    action=CardAuditAction.ISSUED.value,
                    occurred_at=issued_at,
                    details=json.dumps({"attendance_record_id": record.id}),
                )
            )
        return card

    async def issue(self, db: AsyncSession, record: AttendanceRecord) -> CourtCard:
        """
        Create the court card for a COMPLETED attendance record.

        The card is added and flushed but not committed; the caller owns the
        transaction so completion and issuance land together. If the record
        already has a card, that card is returned unchanged.

        A serial that is already taken is skipped and the next one tried;
        ConflictError is raised only if that keeps failing.
        """
        if record.status != AttendanceStatus.COMPLETED.value:
            raise PreconditionError(
                f"Attendance record {record.id} is {record.status}; "
                "only COMPLETED records can receive a court card"
            )

        existing = await db.execute(
            select(CourtCard).where(CourtCard.attendance_record_id == record.id)
        )
        card = existing.scalar_one_or_none()
        if card is not None:
            logger.info("Court card %s already exists for record %s", card.id, record.id)
            return card

        issued_at = utcnow()
        card_hash = compute_card_hash(record)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(IntegrityError),
                stop=stop_after_attempt(CARD_ID_ATTEMPTS),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "Card serial already taken for record %s; allocating another",
                            record.id,
                        )
                    card = await self._insert_card(db, record, issued_at, card_hash)
        except IntegrityError as exc:
            raise ConflictError(
                f"Could not allocate a court card identifier for attendance record {record.id}"
            ) from exc

        logger.info(
            "Court card %s issued for attendance record %s (participant %s)",
            card.id,
            record.id,
            record.participant_id,
        )
        return card

    async def reissue(self, db: AsyncSession, card_id: str) -> Tuple[CourtCard, bool]:
        """
        Rebuild the verification URL and QR payload of an existing card.

        The card identifier, its attendance record link and its sealed hash are
        preserved. Running it again with the same configuration changes nothing.
        Commits its own transaction.

        Returns
        -------
        (card, changed)
            `changed` is False when the card already matched the configuration.
        """
        async with self._reissue_locks.hold(card_id):
            result = await db.execute(select(CourtCard).where(CourtCard.id == card_id))
            card = result.scalar_one_or_none()
            if card is None:
                raise NotFoundError(f"Court card {card_id} not found")

            new_url = self.verification_url_for(card.id)
            new_payload = self.qr_payload_for(card.id, card.card_hash)

            if (
                card.verification_url == new_url
                and card.qr_payload == new_payload
                and card.base_url == self.base_url
            ):
                return card, False

            previous_url = card.verification_url
            now = utcnow()

            card.base_url = self.base_url
            card.verification_url = new_url
            card.qr_payload = new_payload
            card.reissue_count = (card.reissue_count or 0) + 1
            card.last_reissued_at = now

            db.add(
                CardAuditEvent(
                    card_id=card.id,
                    action=CardAuditAction.REISSUED.value,
                    occurred_at=now,
                    details=json.dumps(
                        {"previous_url": previous_url, "verification_url": new_url}
                    ),
                )
            )
            await db.commit()
            await db.refresh(card)

            logger.info("Court card %s reissued: %s -> %s", card.id, previous_url, new_url)
            return card, True
