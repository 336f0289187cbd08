"""DynamoDB-backed persistence for users with a unique email address.

DynamoDB can only guard a write on the item being written, so uniqueness of
the email address is kept by storing two items per user in the same table:

* the primary record, keyed by the user id, holding the user attributes;
* an index record, keyed by the email address, holding the owning user id.

Both items are written and removed together inside ``TransactWriteItems``
calls so that no caller ever sees one without the other. The only non-atomic
sequences are the read-then-write in :meth:`UserStore.delete` and the two
reads in :meth:`UserStore.get_by_email`; a concurrent change there surfaces as
:class:`~userstore.errors.NotFoundError`.

Concurrent :meth:`UserStore.update` calls for the same id are last-writer-wins:
the transaction guards the email index, not the previous contents of the
primary record.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import StoreConfig
from .dynamodb import (
    create_client,
    deserialize,
    is_condition_failure,
    is_transaction_guard_failure,
    serialize,
)
from .errors import DuplicateIdentityError, MissingIdentifierError, NotFoundError, TransportError
from .models import User

logger = logging.getLogger("userstore.store")

HASH_KEY = "Id"
RANGE_KEY = "objectType"
USER_KIND = "UserInfo"
EMAIL_INDEX_KIND = f"{USER_KIND}#email"

_NOT_EXISTS = f"attribute_not_exists({HASH_KEY})"

AttributeMap = Dict[str, Dict[str, Any]]


def _serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _primary_key(user_id: str) -> AttributeMap:
    return serialize({HASH_KEY: user_id, RANGE_KEY: USER_KIND})


def _index_key(email: str) -> AttributeMap:
    return serialize({HASH_KEY: email, RANGE_KEY: EMAIL_INDEX_KIND})


def _user_to_item(user: User) -> AttributeMap:
    return serialize(
        {
            HASH_KEY: user.id,
            RANGE_KEY: USER_KIND,
            "Email": user.email,
            "Name": user.name,
            "Credential": user.credential,
            "LastLogin": _serialize_datetime(user.last_login),
        }
    )


def _index_item(email: str, user_id: str) -> AttributeMap:
    return serialize({HASH_KEY: email, RANGE_KEY: EMAIL_INDEX_KIND, "UserId": user_id})


def _item_to_user(item: Mapping[str, Mapping[str, Any]]) -> User:
    values = deserialize(item)
    return User(
        id=str(values[HASH_KEY]),
        email=str(values.get("Email", "")),
        name=str(values.get("Name", "")),
        credential=str(values.get("Credential", "")),
        last_login=_parse_datetime(values.get("LastLogin")),
    )


def _require_identity(user: User) -> None:
    if not user.id:
        raise MissingIdentifierError("User id cannot be blank")
    if not user.email:
        raise MissingIdentifierError("User email cannot be blank")


class UserStore:
    """Stores users in a single DynamoDB table, keeping emails unique.

    ``client`` is a low-level boto3 DynamoDB client (or anything with the same
    method surface). The store keeps no other state and is safe to share
    between threads.
    """

    def __init__(self, client: Any, table_name: str) -> None:
        if not table_name:
            raise ValueError("Table name must not be empty")
        self._client = client
        self._table_name = table_name

    @classmethod
    def from_config(cls, config: StoreConfig) -> "UserStore":
        return cls(create_client(config), config.table_name)

    @property
    def table_name(self) -> str:
        return self._table_name

    # ------------------------------------------------------------------
    # Table bootstrap
    # ------------------------------------------------------------------
    def initialize_table(
        self,
        *,
        read_capacity: int = 5,
        write_capacity: int = 5,
        wait: bool = False,
    ) -> bool:
        """Create the table unless it already exists.

        Returns ``True`` when the table was created by this call.
        """

        logger.info("Table %s initializing", self._table_name)
        existing = self._list_tables()
        logger.info("Found tables: %s", ", ".join(existing) or "<none>")

        if self._table_name in existing:
            logger.info("Table %s already exists, skipping initialization", self._table_name)
            return False

        logger.info("Table %s not found, attempting bootstrap", self._table_name)
        self._invoke(
            "create_table",
            self._table_name,
            TableName=self._table_name,
            AttributeDefinitions=[
                {"AttributeName": HASH_KEY, "AttributeType": "S"},
                {"AttributeName": RANGE_KEY, "AttributeType": "S"},
            ],
            KeySchema=[
                {"AttributeName": HASH_KEY, "KeyType": "HASH"},
                {"AttributeName": RANGE_KEY, "KeyType": "RANGE"},
            ],
            ProvisionedThroughput={
                "ReadCapacityUnits": read_capacity,
                "WriteCapacityUnits": write_capacity,
            },
        )

        if wait:
            try:
                self._client.get_waiter("table_exists").wait(TableName=self._table_name)
            except BotoCoreError as exc:
                raise self._transport_error("table_exists", self._table_name, exc) from exc

        logger.info("Table %s created successfully", self._table_name)
        return True

    def _list_tables(self) -> List[str]:
        names: List[str] = []
        params: Dict[str, Any] = {}
        while True:
            page = self._invoke("list_tables", "<tables>", **params)
            names.extend(page.get("TableNames", []))
            last = page.get("LastEvaluatedTableName")
            if not last:
                return names
            params["ExclusiveStartTableName"] = last

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_by_id(self, user_id: str) -> User:
        if not user_id:
            raise MissingIdentifierError("User id cannot be blank")

        result = self._invoke(
            "get_item",
            user_id,
            TableName=self._table_name,
            Key=_primary_key(user_id),
        )
        item = result.get("Item")
        if not item:
            raise NotFoundError(f"User {user_id} does not exist")
        return _item_to_user(item)

    def get_by_email(self, email: str) -> User:
        if not email:
            raise MissingIdentifierError("Email cannot be blank")

        result = self._invoke(
            "get_item",
            email,
            TableName=self._table_name,
            Key=_index_key(email),
        )
        item = result.get("Item")
        user_id = deserialize(item).get("UserId") if item else None
        if not user_id:
            raise NotFoundError(f"No user is registered with {email}")

        # The primary record may vanish between the two reads; that surfaces
        # as NotFoundError from get_by_id.
        return self.get_by_id(str(user_id))

    def list(self) -> List[User]:
        """Return every user, following scan pages until the table is exhausted."""

        params: Dict[str, Any] = {
            "TableName": self._table_name,
            "FilterExpression": "#kind = :kind",
            "ExpressionAttributeNames": {"#kind": RANGE_KEY},
            "ExpressionAttributeValues": serialize({":kind": USER_KIND}),
        }

        users: List[User] = []
        while True:
            page = self._invoke("scan", self._table_name, **params)
            users.extend(_item_to_user(item) for item in page.get("Items", []))
            last_key = page.get("LastEvaluatedKey")
            if not last_key:
                return users
            params["ExclusiveStartKey"] = last_key

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(self, user: User) -> None:
        """Insert the primary and index records, failing if either key is taken."""

        _require_identity(user)

        self._transact(
            user.id,
            [
                {
                    "Put": {
                        "TableName": self._table_name,
                        "Item": _user_to_item(user),
                        "ConditionExpression": _NOT_EXISTS,
                    }
                },
                {
                    "Put": {
                        "TableName": self._table_name,
                        "Item": _index_item(user.email, user.id),
                        "ConditionExpression": _NOT_EXISTS,
                    }
                },
            ],
        )
        logger.info("Created user %s", user.id)

    def put(self, user: User) -> None:
        """Replace a user record, migrating the email index only when needed.

        The common case keeps the email, so a single guarded ``PutItem`` is
        tried first. A failed guard means the stored email differs (or the
        user does not exist) and the full :meth:`update` path takes over.
        """

        _require_identity(user)

        if self._put_if_email_unchanged(user):
            return

        logger.debug("Email guard failed for user %s, falling back to update", user.id)
        self.update(user)

    def update(self, user: User) -> None:
        """Rewrite a user, moving the email reservation if the email changed."""

        _require_identity(user)

        current = self.get_by_id(user.id)

        transaction: List[Dict[str, Any]] = [
            {"Put": {"TableName": self._table_name, "Item": _user_to_item(user)}},
        ]

        if user.email != current.email:
            transaction.extend(
                [
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": _index_item(user.email, user.id),
                            "ConditionExpression": _NOT_EXISTS,
                        }
                    },
                    {
                        "Delete": {
                            "TableName": self._table_name,
                            "Key": _index_key(current.email),
                        }
                    },
                ]
            )

        self._transact(user.id, transaction)
        if len(transaction) > 1:
            logger.info("Moved email reservation for user %s", user.id)

    def delete(self, user_id: str) -> None:
        """Remove a user together with its email reservation."""

        current = self.get_by_id(user_id)

        self._transact(
            user_id,
            [
                {"Delete": {"TableName": self._table_name, "Key": _primary_key(user_id)}},
                {"Delete": {"TableName": self._table_name, "Key": _index_key(current.email)}},
            ],
        )
        logger.info("Deleted user %s", user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _put_if_email_unchanged(self, user: User) -> bool:
        """Write the primary record if the stored email matches; report the outcome."""

        try:
            self._client.put_item(
                TableName=self._table_name,
                Item=_user_to_item(user),
                ConditionExpression="#email = :email",
                ExpressionAttributeNames={"#email": "Email"},
                ExpressionAttributeValues=serialize({":email": user.email}),
            )
        except ClientError as exc:
            if is_condition_failure(exc):
                return False
            raise self._transport_error("put_item", user.id, exc) from exc
        except BotoCoreError as exc:
            raise self._transport_error("put_item", user.id, exc) from exc
        return True

    def _transact(self, key: str, items: List[Dict[str, Any]]) -> None:
        try:
            self._client.transact_write_items(TransactItems=items)
        except ClientError as exc:
            if is_transaction_guard_failure(exc):
                logger.warning("Identity collision writing user %s", key)
                raise DuplicateIdentityError(
                    "Email or id is already associated with another user"
                ) from exc
            raise self._transport_error("transact_write_items", key, exc) from exc
        except BotoCoreError as exc:
            raise self._transport_error("transact_write_items", key, exc) from exc

    def _invoke(self, operation: str, key: str, **params: Any) -> Dict[str, Any]:
        try:
            return getattr(self._client, operation)(**params)
        except (ClientError, BotoCoreError) as exc:
            raise self._transport_error(operation, key, exc) from exc

    def _transport_error(self, operation: str, key: str, exc: Exception) -> TransportError:
        logger.error("DynamoDB %s failed for %s on %s: %s", operation, key, self._table_name, exc)
        return TransportError(operation, key, exc)


__all__ = ["UserStore", "USER_KIND", "EMAIL_INDEX_KIND", "HASH_KEY", "RANGE_KEY"]
