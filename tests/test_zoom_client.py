# tests/test_zoom_client.py
import asyncio
from http import HTTPStatus
from typing import Any, Dict, List, Optional

import httpx
import pytest

from proofmeet.core.errors import (
    AuthError,
    ConfigurationError,
    HostUnavailableError,
    MeetingHostError,
)
from proofmeet.schemas.meeting import MeetingHostOptions
from proofmeet.services.zoom_client import ZoomClient


class _FakeResponse:
    def __init__(self, status_code: int, json_data: Dict[str, Any]):
        self.status_code = status_code
        self._json_data = json_data
        # For error messages
        self.text = str(json_data)

    def json(self) -> Dict[str, Any]:
        return self._json_data


class _FakeAsyncClient:
    """
    Minimal stand-in for httpx.AsyncClient used in tests.

    Responses are scripted per endpoint; an Exception in the script is raised
    instead of returned. When a script runs dry a successful default is used.
    """

    token_script: List[Any] = []
    api_script: List[Any] = []
    token_calls: List[Dict[str, Any]] = []
    api_calls: List[Dict[str, Any]] = []

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    async def __aenter__(self) -> "_FakeAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def post(self, url: str, params: Optional[Dict[str, Any]] = None, auth=None, **kwargs):
        _FakeAsyncClient.token_calls.append({"url": url, "params": params, "auth": auth})
        # Yield so concurrent callers can interleave.
        await asyncio.sleep(0)
        if _FakeAsyncClient.token_script:
            outcome = _FakeAsyncClient.token_script.pop(0)
        else:
            outcome = _FakeResponse(
                HTTPStatus.OK,
                {
                    "access_token": f"token-{len(_FakeAsyncClient.token_calls)}",
                    "expires_in": 3600,
                    "token_type": "bearer",
                },
            )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ):
        _FakeAsyncClient.api_calls.append(
            {"method": method, "url": url, "headers": headers, "json": json}
        )
        if _FakeAsyncClient.api_script:
            outcome = _FakeAsyncClient.api_script.pop(0)
        else:
            outcome = _meeting_response()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _meeting_response() -> _FakeResponse:
    return _FakeResponse(
        HTTPStatus.CREATED,
        {
            "id": 85746352413,
            "join_url": "https://zoom.us/j/85746352413?pwd=abc",
            "password": "482913",
            "start_time": "2025-11-12T10:02:00Z",
        },
    )


@pytest.fixture(autouse=True)
def fake_httpx(monkeypatch):
    monkeypatch.setattr(httpx, "AsyncClient", _FakeAsyncClient)
    _FakeAsyncClient.token_script = []
    _FakeAsyncClient.api_script = []
    _FakeAsyncClient.token_calls = []
    _FakeAsyncClient.api_calls = []
    yield _FakeAsyncClient


def _client() -> ZoomClient:
    return ZoomClient(
        account_id="acct-123",
        client_id="client-123",
        client_secret="secret-xyz",
        base_url="https://api.zoom.test/v2/",
    )


def _options() -> MeetingHostOptions:
    return MeetingHostOptions(topic="Test Compliance Meeting - Officer Smith", duration_minutes=30)


def test_missing_credentials_is_configuration_error():
    with pytest.raises(ConfigurationError):
        ZoomClient(account_id="", client_id="client", client_secret="secret")


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_cached():
    client = _client()

    token1 = await client.get_access_token()
    token2 = await client.get_access_token()

    assert token1 == token2 == "token-1"
    assert len(_FakeAsyncClient.token_calls) == 1

    call = _FakeAsyncClient.token_calls[0]
    assert call["url"] == ZoomClient.TOKEN_URL
    assert call["params"] == {"grant_type": "account_credentials", "account_id": "acct-123"}
    assert call["auth"] == ("client-123", "secret-xyz")


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_token_refresh():
    client = _client()

    tokens = await asyncio.gather(*(client.get_access_token() for _ in range(5)))

    assert set(tokens) == {"token-1"}
    assert len(_FakeAsyncClient.token_calls) == 1


@pytest.mark.asyncio
async def test_expired_token_is_refreshed():
    client = ZoomClient(
        account_id="acct-123",
        client_id="client-123",
        client_secret="secret-xyz",
        token_safety_margin_seconds=3600,
    )

    # expires_in (3600) minus the margin leaves no validity.
    await client.get_access_token()
    await client.get_access_token()

    assert len(_FakeAsyncClient.token_calls) == 2


@pytest.mark.asyncio
async def test_create_meeting_builds_request_and_parses_response():
    client = _client()

    hosted = await client.create_meeting(_options())

    assert hosted.external_id == "85746352413"
    assert hosted.join_url.startswith("https://zoom.us/j/")
    assert hosted.password == "482913"

    call = _FakeAsyncClient.api_calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.zoom.test/v2/users/me/meetings"
    assert call["headers"]["Authorization"] == "Bearer token-1"
    assert call["json"]["topic"] == "Test Compliance Meeting - Officer Smith"
    assert call["json"]["duration"] == 30
    assert call["json"]["type"] == 2
    assert call["json"]["settings"]["auto_recording"] == "cloud"


@pytest.mark.asyncio
async def test_unauthorized_call_reauthenticates_once_and_succeeds():
    client = _client()
    _FakeAsyncClient.api_script = [
        _FakeResponse(HTTPStatus.UNAUTHORIZED, {"message": "Invalid access token."}),
        _meeting_response(),
    ]

    hosted = await client.create_meeting(_options())

    assert hosted.external_id == "85746352413"
    assert len(_FakeAsyncClient.token_calls) == 2
    assert len(_FakeAsyncClient.api_calls) == 2
    assert _FakeAsyncClient.api_calls[1]["headers"]["Authorization"] == "Bearer token-2"


@pytest.mark.asyncio
async def test_unauthorized_twice_raises_auth_error():
    client = _client()
    _FakeAsyncClient.api_script = [
        _FakeResponse(HTTPStatus.UNAUTHORIZED, {"message": "Invalid access token."}),
        _FakeResponse(HTTPStatus.UNAUTHORIZED, {"message": "Invalid access token."}),
    ]

    with pytest.raises(AuthError):
        await client.create_meeting(_options())

    assert len(_FakeAsyncClient.api_calls) == 2


@pytest.mark.asyncio
async def test_rejected_credentials_raise_auth_error():
    client = _client()
    _FakeAsyncClient.token_script = [
        _FakeResponse(HTTPStatus.BAD_REQUEST, {"reason": "Invalid client_id or client_secret"}),
        _FakeResponse(HTTPStatus.BAD_REQUEST, {"reason": "Invalid client_id or client_secret"}),
    ]

    with pytest.raises(AuthError):
        await client.create_meeting(_options())

    assert _FakeAsyncClient.api_calls == []


@pytest.mark.asyncio
async def test_token_response_without_token_is_auth_error():
    client = _client()
    _FakeAsyncClient.token_script = [_FakeResponse(HTTPStatus.OK, {"token_type": "bearer"})]

    with pytest.raises(AuthError):
        await client.get_access_token()


@pytest.mark.asyncio
async def test_timeout_is_host_unavailable():
    client = _client()
    _FakeAsyncClient.api_script = [httpx.ReadTimeout("read timed out")]

    with pytest.raises(HostUnavailableError):
        await client.create_meeting(_options())


@pytest.mark.asyncio
async def test_server_error_is_host_unavailable():
    client = _client()
    _FakeAsyncClient.api_script = [_FakeResponse(HTTPStatus.SERVICE_UNAVAILABLE, {"message": "down"})]

    with pytest.raises(HostUnavailableError):
        await client.create_meeting(_options())


@pytest.mark.asyncio
async def test_client_error_is_meeting_host_error_without_retry():
    client = _client()
    _FakeAsyncClient.api_script = [_FakeResponse(HTTPStatus.NOT_FOUND, {"message": "User not found"})]

    with pytest.raises(MeetingHostError) as excinfo:
        await client.create_meeting(_options())

    assert not isinstance(excinfo.value, (AuthError, HostUnavailableError))
    assert len(_FakeAsyncClient.api_calls) == 1
