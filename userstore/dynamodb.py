"""Helpers for talking to DynamoDB through the low-level boto3 client."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import ClientError

from .config import StoreConfig

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def create_client(config: StoreConfig) -> Any:
    """Build a DynamoDB client that never retries on its own.

    Retry policy belongs to the caller; timeouts surface as errors.
    """

    client_config = Config(
        region_name=config.region,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        retries={"mode": "standard", "total_max_attempts": 1},
    )
    return boto3.client(
        "dynamodb",
        endpoint_url=config.endpoint_url,
        config=client_config,
    )


def serialize(values: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert plain Python values into DynamoDB attribute values."""

    return {name: _serializer.serialize(value) for name, value in values.items() if value is not None}


def deserialize(item: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    return {name: _deserializer.deserialize(value) for name, value in item.items()}


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _cancellation_codes(exc: ClientError) -> Iterable[str]:
    reasons = exc.response.get("CancellationReasons") or []
    return [str(reason.get("Code", "")) for reason in reasons]


def is_condition_failure(exc: ClientError) -> bool:
    """Return ``True`` if a conditional write was rejected by its guard."""

    return error_code(exc) == CONDITIONAL_CHECK_FAILED


def is_transaction_guard_failure(exc: ClientError) -> bool:
    """Return ``True`` if a transaction was cancelled because a guard tripped.

    Cancellations for any other reason (conflicting transactions, throttling)
    are not guard failures.
    """

    code = error_code(exc)
    if code == CONDITIONAL_CHECK_FAILED:
        return True
    if code != TRANSACTION_CANCELED:
        return False
    return "ConditionalCheckFailed" in _cancellation_codes(exc)


__all__ = [
    "CONDITIONAL_CHECK_FAILED",
    "TRANSACTION_CANCELED",
    "create_client",
    "deserialize",
    "error_code",
    "is_condition_failure",
    "is_transaction_guard_failure",
    "serialize",
]
