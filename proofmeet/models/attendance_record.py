# proofmeet/models/attendance_record.py
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.orm import relationship

from proofmeet.db.base import Base


class AttendanceRecord(Base):
    """
    One participant's join/leave span for one meeting.

    Created IN_PROGRESS on join and closed exactly once on leave, after which
    the row is a historical record that court cards are hashed from.
    """

    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)

    participant_id = Column(
        Integer,
        ForeignKey("participants.id"),
        nullable=False,
        index=True,
    )
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id"),
        nullable=False,
        index=True,
    )

    meeting_date = Column(Date, nullable=False, index=True)

    join_time = Column(DateTime(timezone=True), nullable=False)
    leave_time = Column(DateTime(timezone=True), nullable=True)

    total_duration_minutes = Column(Float, nullable=True)
    active_duration_minutes = Column(Float, nullable=True)
    idle_duration_minutes = Column(Float, nullable=True)
    attendance_percent = Column(Float, nullable=True)

    status = Column(String(16), nullable=False, default="IN_PROGRESS")
    verification_method = Column(String(32), nullable=False, default="SCREEN_ACTIVITY")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    participant = relationship("Participant", backref="attendance_records")
    meeting = relationship("Meeting", backref="attendance_records")

    __table_args__ = (
        # At most one open record per participant/meeting pair.
        Index(
            "uq_attendance_records_open_pair",
            "participant_id",
            "meeting_id",
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord id={self.id} participant_id={self.participant_id} "
            f"meeting_id={self.meeting_id} status={self.status}>"
        )
