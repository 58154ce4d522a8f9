# tests/test_internal_api.py
from http import HTTPStatus

from proofmeet.api.dependencies import internal_auth as auth_module


class DummySettingsProd:
    APP_ENV = "prod"
    INTERNAL_API_KEY = "supersecret"


class DummySettingsProdNoKey:
    APP_ENV = "prod"
    INTERNAL_API_KEY = None


def _issue_card(client) -> str:
    pid = client.post(
        "/participants",
        json={
            "full_name": "Jordan Doe",
            "email": "jordan.doe@example.com",
            "court_rep_id": "rep-001",
            "required_sessions": 1,
        },
    ).json()["id"]
    mid = client.post(
        "/meetings",
        json={
            "topic": "Tuesday Night Recovery Group",
            "scheduled_start": "2025-11-12T10:00:00Z",
            "planned_duration_minutes": 60,
        },
    ).json()["id"]
    record_id = client.post(
        "/attendance/join",
        json={"participant_id": pid, "meeting_id": mid, "join_time": "2025-11-12T10:00:00Z"},
    ).json()["id"]
    return client.post(
        f"/attendance/{record_id}/leave", json={"leave_time": "2025-11-12T11:00:00Z"}
    ).json()["court_card_id"]


def test_regenerate_cards_open_in_test_env_without_key(client):
    card_id = _issue_card(client)

    resp = client.post("/internal/regenerate-cards")
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    # Base URL unchanged since issuance.
    assert data["total"] == 1
    assert data["unchanged"] == 1
    assert data["reissued"] == 0

    targeted = client.post("/internal/regenerate-cards", json={"card_ids": [card_id, "CC-2025-000404-0000"]})
    assert targeted.status_code == HTTPStatus.OK
    assert targeted.json()["failed"] == 1
    assert targeted.json()["failures"][0]["card_id"] == "CC-2025-000404-0000"


def test_reissue_single_card(client):
    card_id = _issue_card(client)

    resp = client.post(f"/internal/court-cards/{card_id}/reissue")
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["changed"] is False
    assert resp.json()["card"]["id"] == card_id

    missing = client.post("/internal/court-cards/CC-2025-000404-0000/reissue")
    assert missing.status_code == HTTPStatus.NOT_FOUND


def test_internal_endpoint_401_when_key_missing_in_prod(monkeypatch, client):
    """
    In non-local env (APP_ENV='prod') with INTERNAL_API_KEY set, calling an
    /internal endpoint without the X-Internal-Api-Key header should return 401.
    """
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post("/internal/regenerate-cards")
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "invalid or missing" in resp.json()["detail"].lower()


def test_internal_endpoint_401_when_key_wrong_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(
        "/internal/regenerate-cards",
        headers={"X-Internal-Api-Key": "wrong-key"},
    )
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_internal_endpoint_200_when_key_correct_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(
        "/internal/regenerate-cards",
        headers={"X-Internal-Api-Key": "supersecret"},
    )
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["total"] == 0


def test_internal_endpoint_500_when_key_not_configured_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProdNoKey())

    resp = client.post("/internal/regenerate-cards")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_finalize_stale_attendance_closes_and_allows_rejoin(client):
    pid = client.post(
        "/participants",
        json={
            "full_name": "Jordan Doe",
            "email": "jordan.doe@example.com",
            "court_rep_id": "rep-001",
            "required_sessions": 1,
        },
    ).json()["id"]
    mid = client.post(
        "/meetings",
        json={
            "topic": "Tuesday Night Recovery Group",
            "scheduled_start": "2025-11-12T10:00:00Z",
            "planned_duration_minutes": 60,
        },
    ).json()["id"]
    join = {"participant_id": pid, "meeting_id": mid, "join_time": "2025-11-12T10:00:00Z"}
    record_id = client.post("/attendance/join", json=join).json()["id"]

    # Still inside the grace period after the 11:00 end.
    early = client.post("/internal/finalize-stale-attendance", params={"as_of": "2025-11-12T11:05:00Z"})
    assert early.status_code == HTTPStatus.OK
    assert early.json()["total"] == 0

    resp = client.post("/internal/finalize-stale-attendance", params={"as_of": "2025-11-12T12:00:00Z"})
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["total"] == 1
    assert data["completed"] == 1
    assert data["failures"] == []

    record = client.get(f"/attendance/{record_id}").json()
    assert record["status"] == "COMPLETED"
    assert record["leave_time"].startswith("2025-11-12T11:00:00")
    assert client.get(f"/attendance/{record_id}/court-card").status_code == HTTPStatus.OK

    rejoin = client.post("/attendance/join", json={**join, "join_time": "2025-11-12T12:05:00Z"})
    assert rejoin.status_code == HTTPStatus.CREATED


def test_finalize_stale_attendance_requires_key_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post("/internal/finalize-stale-attendance")
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
