# proofmeet/core/errors.py
"""
Error hierarchy for the compliance service.

Every error carries the HTTP status it maps to, so the API layer can render
any of them with a single exception handler. State-invariant violations are
never corrected silently: they abort the operation and reach the caller.
"""
from http import HTTPStatus


class ProofMeetError(Exception):
    """Base exception for all domain errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(ProofMeetError):
    """An open attendance record already exists for the participant/meeting pair."""

    status_code = HTTPStatus.CONFLICT


class InvalidStateError(ProofMeetError):
    """The operation is not valid for the current lifecycle state."""

    status_code = HTTPStatus.CONFLICT


class PreconditionError(ProofMeetError):
    """Card issuance was attempted on a record that is not COMPLETED."""

    status_code = HTTPStatus.CONFLICT


class InvalidInputError(ProofMeetError):
    """Malformed timestamps, durations or identifiers."""

    status_code = HTTPStatus.BAD_REQUEST


class NotFoundError(ProofMeetError):
    """Unknown card, participant, meeting or attendance record."""

    status_code = HTTPStatus.NOT_FOUND


class ConfigurationError(ProofMeetError):
    """Required external configuration is missing or invalid."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class MeetingHostError(ProofMeetError):
    """The video-conferencing provider rejected a call."""

    status_code = HTTPStatus.BAD_GATEWAY


class AuthError(MeetingHostError):
    """
    Provider credentials are invalid or expired.

    Calls failing with this error are retried once after re-authentication.
    """


class HostUnavailableError(MeetingHostError):
    """The provider timed out, was unreachable or answered with a 5xx."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
