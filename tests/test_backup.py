import json

import pytest
import requests
import responses

from zengarden.helpers import BackupError, BackupHelper

BASE = "https://backup.example.test"

SNAPSHOT = {
    "user": {"user_id": "42", "username": "alice", "icon": "🌱", "xp": 0},
    "inventory": {"user_id": "42", "gold": 100, "items": {"items": []}},
    "garden": {"user_id": "42", "plots": []},
    "stores": {},
}


@pytest.fixture
def client():
    return BackupHelper(BASE + "/", timeout=5)


def test_requires_base_url():
    with pytest.raises(ValueError):
        BackupHelper("")


@responses.activate
def test_create_account_posts_snapshot(client):
    responses.add(responses.POST, f"{BASE}/api/account", json={"ok": True}, status=201)

    assert client.create_account("42", SNAPSHOT) == {"ok": True}

    body = json.loads(responses.calls[0].request.body)
    assert body["user_id"] == "42"
    assert body["inventory"]["gold"] == 100


@responses.activate
def test_fetch_account(client):
    responses.add(responses.GET, f"{BASE}/api/account/42", json=SNAPSHOT, status=200)

    assert client.fetch_account("42")["user"]["username"] == "alice"


@responses.activate
def test_profile_patches(client):
    responses.add(responses.PATCH, f"{BASE}/api/user/42/icon", json={}, status=200)
    responses.add(responses.PATCH, f"{BASE}/api/user/42/username", body="", status=204)

    assert client.patch_icon("42", "🌻") == {}
    assert client.patch_username("42", "Alice") == {}
    assert json.loads(responses.calls[1].request.body) == {"username": "Alice"}


@responses.activate
def test_error_status_raises_with_code(client):
    responses.add(responses.GET, f"{BASE}/api/account/42", json={"error": "forbidden"}, status=403)

    with pytest.raises(BackupError) as excinfo:
        client.fetch_account("42")

    assert excinfo.value.status_code == 403


@responses.activate
def test_invalid_json_raises(client):
    responses.add(responses.GET, f"{BASE}/api/account/42", body="not json", status=200)

    with pytest.raises(BackupError):
        client.fetch_account("42")


@responses.activate
def test_connection_error_raises(client):
    responses.add(responses.GET, f"{BASE}/api/account/42", body=requests.ConnectionError("refused"))

    with pytest.raises(BackupError) as excinfo:
        client.fetch_account("42")

    assert excinfo.value.status_code is None


@responses.activate
def test_push_account_creates_on_first_backup(client):
    responses.add(responses.PATCH, f"{BASE}/api/account", json={"error": "missing"}, status=404)
    responses.add(responses.POST, f"{BASE}/api/account", json={"created": True}, status=201)

    assert client.push_account("42", SNAPSHOT) == {"created": True}
    assert [call.request.method for call in responses.calls] == ["PATCH", "POST"]


@responses.activate
def test_push_account_propagates_other_errors(client):
    responses.add(responses.PATCH, f"{BASE}/api/account", json={"error": "boom"}, status=500)

    with pytest.raises(BackupError):
        client.push_account("42", SNAPSHOT)
    assert len(responses.calls) == 1
