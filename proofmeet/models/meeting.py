# proofmeet/models/meeting.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from proofmeet.db.base import Base


class Meeting(Base):
    """
    A meeting participants can attend.

    TEST meetings are created through the video host on behalf of a court
    representative; EXTERNAL meetings are registered from an outside schedule.
    Only `is_cancelled` may change after creation.
    """

    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, index=True)

    source = Column(String(16), nullable=False, default="EXTERNAL")
    topic = Column(String(300), nullable=False)
    program = Column(String(64), nullable=True)

    scheduled_start = Column(DateTime(timezone=True), nullable=False, index=True)
    planned_duration_minutes = Column(Integer, nullable=False)

    external_id = Column(String(64), nullable=True, unique=True)
    join_url = Column(String(1024), nullable=True)
    password = Column(String(64), nullable=True)

    created_by = Column(String(64), nullable=True)
    is_cancelled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<Meeting id={self.id} source={self.source} "
            f"start={self.scheduled_start} cancelled={self.is_cancelled}>"
        )
