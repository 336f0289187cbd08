"""End-to-end tests for the user directory HTTP API."""

from __future__ import annotations

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from fake_dynamodb import FakeDynamoDBClient
from userstore.api import create_app
from userstore.store import UserStore

PASSWORD = "super-secret-password"


@pytest.fixture()
def client(store: UserStore):
    app = create_app(store=store)
    with TestClient(app) as test_client:
        yield test_client


def _register(client: TestClient, email: str = "user@example.com", name: str = "Test User") -> dict:
    response = client.post("/users", json={"name": name, "email": email, "password": PASSWORD})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_create_and_fetch_user(client: TestClient) -> None:
    created = _register(client)

    assert created["email"] == "user@example.com"
    assert "credential" not in created
    assert "password" not in created

    by_id = client.get(f"/users/{created['id']}")
    assert by_id.status_code == 200
    assert by_id.json() == created

    by_email = client.get("/users/by-email/user@example.com")
    assert by_email.status_code == 200
    assert by_email.json()["id"] == created["id"]


def test_duplicate_registration_conflicts(client: TestClient) -> None:
    _register(client)
    response = client.post(
        "/users",
        json={"name": "Other", "email": "USER@example.com", "password": PASSWORD},
    )
    assert response.status_code == 409


def test_short_password_is_rejected(client: TestClient) -> None:
    response = client.post("/users", json={"name": "Test", "email": "a@example.com", "password": "short"})
    assert response.status_code == 422


def test_unknown_user_is_404(client: TestClient) -> None:
    assert client.get("/users/missing").status_code == 404
    assert client.delete("/users/missing").status_code == 404


def test_list_users(client: TestClient) -> None:
    _register(client, "one@example.com", "One")
    _register(client, "two@example.com", "Two")

    response = client.get("/users")

    assert response.status_code == 200
    assert sorted(user["email"] for user in response.json()) == ["one@example.com", "two@example.com"]


def test_update_email_and_password(client: TestClient) -> None:
    created = _register(client)

    response = client.put(
        f"/users/{created['id']}",
        json={"email": "renamed@example.com", "password": "another-long-password"},
    )

    assert response.status_code == 200, response.text
    assert response.json()["email"] == "renamed@example.com"
    assert client.get("/users/by-email/user@example.com").status_code == 404

    login = client.post("/login", json={"email": "renamed@example.com", "password": "another-long-password"})
    assert login.status_code == 200


def test_update_to_taken_email_conflicts(client: TestClient) -> None:
    first = _register(client, "first@example.com")
    _register(client, "second@example.com")

    response = client.put(f"/users/{first['id']}", json={"email": "second@example.com"})

    assert response.status_code == 409
    assert client.get("/users/by-email/first@example.com").json()["id"] == first["id"]


def test_empty_update_is_rejected(client: TestClient) -> None:
    created = _register(client)
    assert client.put(f"/users/{created['id']}", json={}).status_code == 422


def test_delete_user(client: TestClient) -> None:
    created = _register(client)

    assert client.delete(f"/users/{created['id']}").status_code == 204
    assert client.get(f"/users/{created['id']}").status_code == 404
    assert client.get("/users/by-email/user@example.com").status_code == 404


def test_login_flow(client: TestClient) -> None:
    created = _register(client)

    wrong = client.post("/login", json={"email": "user@example.com", "password": "nope"})
    assert wrong.status_code == 401

    unknown = client.post("/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert unknown.status_code == 404

    ok = client.post("/login", json={"email": "User@Example.com", "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json() == {"status": "SUCCESS"}
    assert client.get(f"/users/{created['id']}").json()["last_login"] is not None


def test_store_outage_is_503(client: TestClient, dynamodb: FakeDynamoDBClient) -> None:
    dynamodb.fail_next = ClientError(
        {"Error": {"Code": "ServiceUnavailable", "Message": "down"}},
        "Scan",
    )

    response = client.get("/users")

    assert response.status_code == 503
    assert response.json() == {"detail": "User store is unavailable"}


def test_create_app_can_bootstrap_table() -> None:
    dynamodb = FakeDynamoDBClient()
    store = UserStore(dynamodb, "fresh-table")

    create_app(store=store, initialize_table=True)

    assert "fresh-table" in dynamodb.tables


def test_failed_update_leaves_email_and_password_untouched(
    client: TestClient, dynamodb: FakeDynamoDBClient
) -> None:
    created = _register(client, "old@example.com")
    dynamodb.failures["transact_write_items"] = ClientError(
        {"Error": {"Code": "InternalServerError", "Message": "boom"}},
        "TransactWriteItems",
    )

    response = client.put(
        f"/users/{created['id']}",
        json={"email": "new@example.com", "password": "otherpassword2"},
    )

    assert response.status_code == 503
    assert client.get(f"/users/{created['id']}").json()["email"] == "old@example.com"
    assert client.get("/users/by-email/old@example.com").status_code == 200
    assert client.get("/users/by-email/new@example.com").status_code == 404
    login = client.post("/login", json={"email": "old@example.com", "password": PASSWORD})
    assert login.status_code == 200


def test_update_with_blank_name_is_bad_request(client: TestClient) -> None:
    created = _register(client)

    response = client.put(f"/users/{created['id']}", json={"name": "   "})

    assert response.status_code == 400
    assert response.json() == {"detail": "Name must not be empty"}


def test_corrupt_stored_record_is_not_reported_as_bad_request(
    store: UserStore, dynamodb: FakeDynamoDBClient
) -> None:
    app = create_app(store=store)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        created = _register(test_client)
        dynamodb.items["test-table"][(created["id"], "UserInfo")]["LastLogin"] = {"S": "not-a-date"}

        response = test_client.get(f"/users/{created['id']}")

    assert response.status_code == 500
