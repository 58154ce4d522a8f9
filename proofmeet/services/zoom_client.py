# proofmeet/services/zoom_client.py
from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from proofmeet.core.config import get_settings
from proofmeet.core.errors import (
    AuthError,
    ConfigurationError,
    HostUnavailableError,
    MeetingHostError,
)
from proofmeet.schemas.meeting import HostedMeeting, MeetingHostOptions

logger = logging.getLogger(__name__)


class MeetingHost(Protocol):
    """
    Capability the rest of the service needs from a video-conferencing provider.
    """

    async def create_meeting(self, options: MeetingHostOptions) -> HostedMeeting:
        ...


@dataclass
class _TokenState:
    access_token: str
    expires_at: datetime


class ZoomClient:
    """
    Minimal Zoom API client using the Server-to-Server OAuth flow.

    Responsibilities
    ----------------
    - Fetch and cache an access token (account_credentials grant).
    - Create scheduled meetings and return their join credentials.
    - Translate transport/HTTP failures into the service's error taxonomy.

    Notes
    -----
    - Token caching is in-memory for this process only.
    - The expiry is checked before every call; refreshes are single-flight, so
      concurrent callers wait for one in-progress refresh instead of racing.
    - A 401 on an API call drops the cached token and retries exactly once.
    """

    TOKEN_URL = "https://zoom.us/oauth/token"

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api.zoom.us/v2",
        timeout_seconds: float = 10.0,
        default_timezone: str = "America/Los_Angeles",
        token_safety_margin_seconds: int = 300,
    ) -> None:
        if not account_id or not client_id or not client_secret:
            raise ConfigurationError("account_id, client_id and client_secret are required")

        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._default_timezone = default_timezone
        self._safety_margin = token_safety_margin_seconds

        self._token_state: Optional[_TokenState] = None
        self._token_lock = asyncio.Lock()

    def _token_is_valid(self) -> bool:
        now = datetime.now(tz=timezone.utc)
        return self._token_state is not None and self._token_state.expires_at > now

    def invalidate_token(self) -> None:
        self._token_state = None

    async def _fetch_token(self) -> _TokenState:
        """
        Fetch a fresh access token from the Zoom OAuth endpoint.
        """
        params = {
            "grant_type": "account_credentials",
            "account_id": self._account_id,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(
                    self.TOKEN_URL,
                    params=params,
                    auth=(self._client_id, self._client_secret),
                )
        except httpx.TimeoutException as exc:
            raise HostUnavailableError(f"Timed out obtaining Zoom token: {exc}") from exc
        except httpx.TransportError as exc:
            raise HostUnavailableError(f"Could not reach Zoom OAuth endpoint: {exc}") from exc

        if resp.status_code in (400, 401, 403):
            raise AuthError(
                f"Zoom rejected the client credentials (status={resp.status_code}): {resp.text}"
            )
        if resp.status_code != 200:
            raise HostUnavailableError(
                f"Failed to obtain Zoom token (status={resp.status_code}): {resp.text}"
            )

        payload = resp.json()
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")

        if not access_token or not isinstance(expires_in, (int, float)):
            raise AuthError("Invalid token response from Zoom (missing access_token/expires_in)")

        now = datetime.now(tz=timezone.utc)
        expires_at = now + timedelta(seconds=max(float(expires_in) - self._safety_margin, 0.0))

        logger.info("Obtained Zoom access token valid until %s", expires_at.isoformat())
        return _TokenState(access_token=access_token, expires_at=expires_at)

    async def get_access_token(self) -> str:
        """
        Return a valid access token, using the cached value while it is fresh.
        """
        if self._token_is_valid():
            return self._token_state.access_token  # type: ignore[union-attr]

        async with self._token_lock:
            # Another caller may have refreshed while we waited for the lock.
            if not self._token_is_valid():
                self._token_state = await self._fetch_token()
            return self._token_state.access_token  # type: ignore[union-attr]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> Dict[str, Any]:
        token = await self.get_access_token()
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    json=json,
                )
        except httpx.TimeoutException as exc:
            raise HostUnavailableError(f"Zoom {method} {path} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise HostUnavailableError(f"Zoom {method} {path} failed: {exc}") from exc

        if resp.status_code == 401:
            raise AuthError(f"Zoom rejected the access token (status=401): {resp.text}")
        if resp.status_code >= 500:
            raise HostUnavailableError(
                f"Zoom {method} {path} failed (status={resp.status_code}): {resp.text}"
            )
        if resp.status_code // 100 != 2:
            raise MeetingHostError(
                f"Zoom {method} {path} failed (status={resp.status_code}): {resp.text}"
            )
        return resp.json()

    async def _request_with_reauth(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> Dict[str, Any]:
        """
        Issue a request; on AuthError drop the cached token and try once more.
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(AuthError),
            stop=stop_after_attempt(2),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning("Re-authenticating with Zoom after AuthError")
                    self.invalidate_token()
                return await self._request(method, path, json=json)
        raise AssertionError("unreachable")  # pragma: no cover

    async def create_meeting(self, options: MeetingHostOptions) -> HostedMeeting:
        """
        Create a scheduled Zoom meeting and return its join credentials.
        """
        start_time = datetime.now(tz=timezone.utc) + timedelta(minutes=options.start_delay_minutes)
        body = {
            "topic": options.topic,
            "type": 2,  # scheduled meeting
            "start_time": start_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": options.duration_minutes,
            "timezone": self._default_timezone,
            "agenda": "Court compliance meeting",
            "password": self._generate_password(),
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": True,
                "mute_upon_entry": False,
                "waiting_room": options.waiting_room,
                "approval_type": 0,
                "audio": "both",
                "auto_recording": "cloud" if options.recording_enabled else "none",
                "meeting_authentication": False,
            },
        }

        payload = await self._request_with_reauth("POST", "/users/me/meetings", json=body)

        try:
            hosted = HostedMeeting(
                external_id=str(payload["id"]),
                join_url=payload["join_url"],
                password=payload.get("password"),
                start_time=payload.get("start_time") or start_time,
            )
        except KeyError as exc:
            raise MeetingHostError(f"Zoom meeting response missing field {exc}") from exc

        logger.info("Zoom meeting created: %s (%s)", hosted.external_id, options.topic)
        return hosted

    @staticmethod
    def _generate_password() -> str:
        return "".join(secrets.choice("0123456789") for _ in range(6))


# Simple singleton-style accessor wired to app settings
_zoom_client_instance: Optional[ZoomClient] = None


def get_zoom_client() -> ZoomClient:
    """
    Lazily construct the shared ZoomClient from application settings.

    Used as a FastAPI dependency; tests override it with a fake host.
    """
    global _zoom_client_instance
    if _zoom_client_instance is None:
        settings = get_settings()
        if not settings.ZOOM_ACCOUNT_ID or not settings.ZOOM_CLIENT_ID or not settings.ZOOM_CLIENT_SECRET:
            raise ConfigurationError(
                "ZOOM_ACCOUNT_ID, ZOOM_CLIENT_ID and ZOOM_CLIENT_SECRET must be "
                "configured to create meetings."
            )
        _zoom_client_instance = ZoomClient(
            account_id=settings.ZOOM_ACCOUNT_ID,
            client_id=settings.ZOOM_CLIENT_ID,
            client_secret=settings.ZOOM_CLIENT_SECRET,
            base_url=settings.ZOOM_API_BASE_URL,
            timeout_seconds=settings.ZOOM_TIMEOUT_SECONDS,
            default_timezone=settings.ZOOM_DEFAULT_TIMEZONE,
        )
    return _zoom_client_instance
