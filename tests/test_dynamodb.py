from __future__ import annotations

from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from userstore.config import StoreConfig
from userstore.dynamodb import (
    create_client,
    deserialize,
    is_condition_failure,
    is_transaction_guard_failure,
    serialize,
)


def _error(code: str, **extra: object) -> ClientError:
    response = {"Error": {"Code": code, "Message": "simulated"}}
    response.update(extra)
    return ClientError(response, "TransactWriteItems")  # type: ignore[arg-type]


def test_guard_failure_detected_from_cancellation_reasons() -> None:
    exc = _error(
        "TransactionCanceledException",
        CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
    )
    assert is_transaction_guard_failure(exc)
    assert not is_condition_failure(exc)


def test_conflicting_transaction_is_not_a_guard_failure() -> None:
    exc = _error("TransactionCanceledException", CancellationReasons=[{"Code": "TransactionConflict"}])
    assert not is_transaction_guard_failure(exc)


def test_cancellation_without_reasons_is_not_a_guard_failure() -> None:
    assert not is_transaction_guard_failure(_error("TransactionCanceledException"))


def test_plain_conditional_check_failure() -> None:
    exc = _error("ConditionalCheckFailedException")
    assert is_condition_failure(exc)
    assert is_transaction_guard_failure(exc)


def test_serialize_skips_unset_values() -> None:
    item = serialize({"Id": "user-1", "LastLogin": None})
    assert item == {"Id": {"S": "user-1"}}
    assert deserialize(item) == {"Id": "user-1"}


def test_create_client_disables_retries() -> None:
    mock_client = MagicMock()
    config = StoreConfig(endpoint_url="http://localhost:8000", connect_timeout=2.0, read_timeout=3.0)

    with patch("boto3.client", return_value=mock_client) as factory:
        client = create_client(config)

    assert client is mock_client
    args, kwargs = factory.call_args
    assert args == ("dynamodb",)
    assert kwargs["endpoint_url"] == "http://localhost:8000"
    botocore_config = kwargs["config"]
    assert botocore_config.region_name == "us-west-2"
    assert botocore_config.connect_timeout == 2.0
    assert botocore_config.read_timeout == 3.0
    assert botocore_config.retries["total_max_attempts"] == 1
