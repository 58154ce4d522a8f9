# proofmeet/api/dependencies/services.py
from fastapi import Depends, Request

from proofmeet.core.config import Settings, get_settings
from proofmeet.core.errors import ConfigurationError
from proofmeet.services.attendance_tracker import AttendanceTracker
from proofmeet.services.court_card_issuer import CourtCardIssuer
from proofmeet.services.zoom_client import MeetingHost, get_zoom_client


def get_card_issuer(request: Request) -> CourtCardIssuer:
    """
    The issuer built (and validated) by the application factory.
    """
    issuer = getattr(request.app.state, "card_issuer", None)
    if issuer is None:
        raise ConfigurationError("Court card issuer was not initialised at startup.")
    return issuer


def get_attendance_tracker(
    issuer: CourtCardIssuer = Depends(get_card_issuer),
    settings: Settings = Depends(get_settings),
) -> AttendanceTracker:
    return AttendanceTracker(
        issuer=issuer,
        minimum_fraction=settings.MINIMUM_ATTENDANCE_FRACTION,
    )


def get_meeting_host() -> MeetingHost:
    return get_zoom_client()
