# proofmeet/models/participant.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from proofmeet.db.base import Base


class Participant(Base):
    """
    A person required to attend a recurring number of sessions per period.

    Rows are never hard-deleted; `is_active` is cleared instead so that the
    attendance history stays auditable.
    """

    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)

    full_name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, unique=True, index=True)
    case_number = Column(String(64), nullable=True, index=True)

    court_rep_id = Column(String(64), nullable=False, index=True)
    court_rep_name = Column(String(200), nullable=True)
    court_rep_email = Column(String(320), nullable=True)

    required_sessions = Column(Integer, nullable=False, default=0)
    period_days = Column(Integer, nullable=False, default=7)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant id={self.id} email={self.email} "
            f"court_rep_id={self.court_rep_id}>"
        )
