from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fake_dynamodb import FakeDynamoDBClient
from userstore.models import User
from userstore.service import AccountService
from userstore.store import UserStore

TABLE_NAME = "test-table"


@pytest.fixture()
def dynamodb() -> FakeDynamoDBClient:
    return FakeDynamoDBClient()


@pytest.fixture()
def store(dynamodb: FakeDynamoDBClient) -> UserStore:
    user_store = UserStore(dynamodb, TABLE_NAME)
    user_store.initialize_table()
    dynamodb.calls.clear()
    return user_store


@pytest.fixture()
def service(store: UserStore) -> AccountService:
    return AccountService(store)


@pytest.fixture()
def alice() -> User:
    return User(id="user-alice", email="alice@example.com", name="Alice", credential="hash-a")


@pytest.fixture()
def bob() -> User:
    return User(id="user-bob", email="bob@example.com", name="Bob", credential="hash-b")
