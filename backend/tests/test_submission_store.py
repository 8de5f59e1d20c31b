"""Tests for the submission stores."""

import threading
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from models.submission import NewSubmission
from services.submission_store import (
    MAX_LIST_LIMIT,
    STATUS_CONNECTED,
    STATUS_DISCONNECTED,
    STATUS_IN_MEMORY,
    SUBMISSIONS_PARTITION,
    DynamoDBSubmissionStore,
    StorageUnavailableError,
)


def _client_error(code="ResourceNotFoundException", operation="Query"):
    return ClientError(
        {"Error": {"Code": code, "Message": "Requested resource not found"}},
        operation,
    )


def _submission(index: int) -> NewSubmission:
    return NewSubmission(
        name="Jane Doe",
        email=f"jane{index}@example.com",
        message=f"Test message number {index}",
        ip_address="203.0.113.7",
    )


class TestInMemorySubmissionStore:
    """Test cases for InMemorySubmissionStore."""

    def test_append_returns_unique_ids(self, memory_store, new_submission):
        ids = {memory_store.append(new_submission) for _ in range(10)}
        assert len(ids) == 10
        assert memory_store.count() == 10

    def test_append_does_not_mutate_record(self, memory_store, new_submission):
        before = new_submission.model_dump()
        memory_store.append(new_submission)
        assert new_submission.model_dump() == before

    def test_append_assigns_timestamp_and_keeps_ip(self, memory_store, new_submission):
        submission_id = memory_store.append(new_submission)

        [stored] = memory_store.list_recent()
        assert stored.submission_id == submission_id
        assert stored.created_at
        assert stored.ip_address == "203.0.113.7"
        assert stored.email == "jane@example.com"

    def test_list_recent_newest_first(self, memory_store):
        first = memory_store.append(_submission(1))
        second = memory_store.append(_submission(2))

        ids = [s.submission_id for s in memory_store.list_recent()]
        assert ids == [second, first]

    def test_equal_timestamps_use_reverse_insertion_order(self, memory_store):
        with patch("services.submission_store.datetime") as mock_datetime:
            mock_datetime.now.return_value.isoformat.return_value = (
                "2026-01-20T08:00:00+00:00"
            )
            ids = [memory_store.append(_submission(i)) for i in range(3)]

        listed = [s.submission_id for s in memory_store.list_recent()]
        assert listed == list(reversed(ids))

    def test_whole_second_timestamp_keeps_fixed_width(self, memory_store):
        whole = datetime(2026, 1, 20, 8, 0, 0, tzinfo=UTC)
        later = datetime(2026, 1, 20, 8, 0, 0, 1, tzinfo=UTC)
        with patch("services.submission_store.datetime") as mock_datetime:
            mock_datetime.now.side_effect = [whole, later]
            first = memory_store.append(_submission(1))
            second = memory_store.append(_submission(2))

        listed = memory_store.list_recent()
        assert [s.submission_id for s in listed] == [second, first]
        assert listed[1].created_at == "2026-01-20T08:00:00.000000+00:00"

    def test_list_recent_caps_at_maximum(self, memory_store):
        for i in range(60):
            memory_store.append(_submission(i))

        assert len(memory_store.list_recent()) == MAX_LIST_LIMIT
        assert len(memory_store.list_recent(limit=500)) == MAX_LIST_LIMIT
        assert len(memory_store.list_recent(limit=5)) == 5
        assert memory_store.list_recent(limit=0) == []
        assert memory_store.count() == 60

    def test_list_recent_returns_copies(self, memory_store, new_submission):
        memory_store.append(new_submission)
        listed = memory_store.list_recent()
        listed[0].name = "Changed"

        assert memory_store.list_recent()[0].name == "Jane Doe"

    def test_concurrent_appends_keep_every_record(self, memory_store):
        ids: list[str] = []
        ids_lock = threading.Lock()

        def worker(offset: int):
            for i in range(25):
                submission_id = memory_store.append(_submission(offset + i))
                with ids_lock:
                    ids.append(submission_id)

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert memory_store.count() == 200
        assert len(set(ids)) == 200

    def test_always_available(self, memory_store):
        assert memory_store.is_available() is True
        assert memory_store.status_label() == STATUS_IN_MEMORY


class TestDynamoDBSubmissionStore:
    """Test cases for DynamoDBSubmissionStore with a mocked table."""

    @pytest.fixture
    def store(self, mock_dynamodb_table):
        return DynamoDBSubmissionStore(table=mock_dynamodb_table)

    @pytest.fixture
    def sample_item(self):
        """Create a sample DynamoDB item for a submission."""
        return {
            "partition_key": SUBMISSIONS_PARTITION,
            "sort_key": "2026-01-20T08:00:00+00:00#01HXYZ123456789ABCDEFGHIJ",
            "submission_id": "01HXYZ123456789ABCDEFGHIJ",
            "name": "Jane Doe",
            "email": "jane@example.com",
            "message": "Hello, this is a test message.",
            "created_at": "2026-01-20T08:00:00+00:00",
            "ip_address": "203.0.113.7",
        }

    def test_append_puts_item(self, store, mock_dynamodb_table, new_submission):
        submission_id = store.append(new_submission)

        mock_dynamodb_table.put_item.assert_called_once()
        call_kwargs = mock_dynamodb_table.put_item.call_args.kwargs
        item = call_kwargs["Item"]
        assert item["submission_id"] == submission_id
        assert item["partition_key"] == SUBMISSIONS_PARTITION
        assert item["sort_key"] == f"{item['created_at']}#{submission_id}"
        assert item["email"] == "jane@example.com"
        assert item["ip_address"] == "203.0.113.7"
        assert call_kwargs["ConditionExpression"] == "attribute_not_exists(sort_key)"

    def test_append_client_error(self, store, mock_dynamodb_table, new_submission):
        mock_dynamodb_table.put_item.side_effect = _client_error(operation="PutItem")

        with pytest.raises(StorageUnavailableError):
            store.append(new_submission)

    def test_append_connection_error(self, store, mock_dynamodb_table, new_submission):
        mock_dynamodb_table.put_item.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:8000"
        )

        with pytest.raises(StorageUnavailableError):
            store.append(new_submission)

    def test_list_recent_queries_newest_first(
        self, store, mock_dynamodb_table, sample_item
    ):
        mock_dynamodb_table.query.return_value = {"Items": [sample_item]}

        submissions = store.list_recent()

        assert len(submissions) == 1
        assert submissions[0].submission_id == "01HXYZ123456789ABCDEFGHIJ"
        assert submissions[0].ip_address == "203.0.113.7"
        call_kwargs = mock_dynamodb_table.query.call_args.kwargs
        assert call_kwargs["ScanIndexForward"] is False
        assert call_kwargs["Limit"] == MAX_LIST_LIMIT

    def test_list_recent_clamps_limit(self, store, mock_dynamodb_table):
        store.list_recent(limit=1000)
        assert mock_dynamodb_table.query.call_args.kwargs["Limit"] == MAX_LIST_LIMIT

    def test_list_recent_zero_limit_skips_query(self, store, mock_dynamodb_table):
        assert store.list_recent(limit=0) == []
        mock_dynamodb_table.query.assert_not_called()

    def test_list_recent_error(self, store, mock_dynamodb_table):
        mock_dynamodb_table.query.side_effect = _client_error()

        with pytest.raises(StorageUnavailableError):
            store.list_recent()

    def test_count_follows_pagination(self, store, mock_dynamodb_table):
        mock_dynamodb_table.query.side_effect = [
            {"Count": 40, "LastEvaluatedKey": {"partition_key": "x", "sort_key": "y"}},
            {"Count": 2},
        ]

        assert store.count() == 42
        second_call = mock_dynamodb_table.query.call_args_list[1].kwargs
        assert second_call["ExclusiveStartKey"] == {
            "partition_key": "x",
            "sort_key": "y",
        }
        assert second_call["Select"] == "COUNT"

    def test_count_error(self, store, mock_dynamodb_table):
        mock_dynamodb_table.query.side_effect = _client_error()

        with pytest.raises(StorageUnavailableError):
            store.count()

    def test_status_connected(self, store):
        assert store.is_available() is True
        assert store.status_label() == STATUS_CONNECTED

    def test_status_disconnected(self, store, mock_dynamodb_table):
        mock_dynamodb_table.load.side_effect = _client_error(operation="DescribeTable")

        assert store.is_available() is False
        assert store.status_label() == STATUS_DISCONNECTED
