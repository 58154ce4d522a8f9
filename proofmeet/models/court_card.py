# proofmeet/models/court_card.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import backref, relationship

from proofmeet.db.base import Base


class CourtCard(Base):
    """
    Proof-of-attendance artifact bound to exactly one COMPLETED attendance record.

    `card_hash` is sealed at issuance and never recomputed from the record;
    reissuing only rebuilds the verification URL and QR payload.
    """

    __tablename__ = "court_cards"

    id = Column(String(32), primary_key=True)

    attendance_record_id = Column(
        Integer,
        ForeignKey("attendance_records.id"),
        nullable=False,
        unique=True,
    )

    issued_at = Column(DateTime(timezone=True), nullable=False)
    card_hash = Column(String(64), nullable=False)

    base_url = Column(String(512), nullable=False)
    verification_url = Column(String(1024), nullable=False)
    qr_payload = Column(Text, nullable=False)

    validation_status = Column(String(16), nullable=False, default="PENDING")

    reissue_count = Column(Integer, nullable=False, default=0)
    last_reissued_at = Column(DateTime(timezone=True), nullable=True)

    verification_count = Column(Integer, nullable=False, default=0)
    last_verified_at = Column(DateTime(timezone=True), nullable=True)

    attendance_record = relationship(
        "AttendanceRecord",
        backref=backref("court_card", uselist=False),
    )

    def __repr__(self) -> str:
        return (
            f"<CourtCard id={self.id} attendance_record_id={self.attendance_record_id} "
            f"status={self.validation_status}>"
        )


class CardAuditEvent(Base):
    """
    Append-only audit trail entry for a court card (issuance, reissue,
    public verification, tampering detection).
    """

    __tablename__ = "card_audit_events"

    id = Column(Integer, primary_key=True, index=True)

    card_id = Column(
        String(32),
        ForeignKey("court_cards.id"),
        nullable=False,
        index=True,
    )

    action = Column(String(32), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    details = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CardAuditEvent id={self.id} card_id={self.card_id} action={self.action}>"


class CardSequence(Base):
    """
    Per-year counter behind court card serial numbers.

    Issuers lock the year's row (`SELECT ... FOR UPDATE`) before taking the
    next value, so concurrent closes never hand out the same serial.
    """

    __tablename__ = "court_card_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<CardSequence year={self.year} last_value={self.last_value}>"
