"""Storage backends for contact form submissions."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from ulid import ULID

from models.submission import NewSubmission, Submission

logger = logging.getLogger(__name__)

# Most recent submissions returned by a listing
MAX_LIST_LIMIT = 50

# All submissions share one partition so a single query returns them in order
SUBMISSIONS_PARTITION = "submission"

STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"
STATUS_IN_MEMORY = "demo-mode (in-memory)"


class StorageUnavailableError(Exception):
    """Raised when the backing store cannot be reached or an operation fails."""


def _clamp_limit(limit: int) -> int:
    return max(0, min(limit, MAX_LIST_LIMIT))


def _new_submission(record: NewSubmission) -> Submission:
    return Submission(
        submission_id=str(ULID()),
        name=record.name,
        email=record.email,
        message=record.message,
        created_at=datetime.now(UTC).isoformat(timespec="microseconds"),
        ip_address=record.ip_address,
    )


class SubmissionStore(ABC):
    """Append-only store of submissions."""

    @abstractmethod
    def append(self, record: NewSubmission) -> str:
        """Persist a validated submission and return its assigned id."""

    @abstractmethod
    def list_recent(self, limit: int = MAX_LIST_LIMIT) -> list[Submission]:
        """Return up to `limit` submissions, newest first."""

    @abstractmethod
    def count(self) -> int:
        """Return the total number of stored submissions."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the backing store is reachable."""

    def status_label(self) -> str:
        return STATUS_CONNECTED if self.is_available() else STATUS_DISCONNECTED


class InMemorySubmissionStore(SubmissionStore):
    """Process-local store for demo mode. Contents are lost on restart."""

    def __init__(self):
        self._submissions: list[Submission] = []
        self._lock = threading.Lock()

    def append(self, record: NewSubmission) -> str:
        with self._lock:
            submission = _new_submission(record)
            self._submissions.append(submission)
        return submission.submission_id

    def list_recent(self, limit: int = MAX_LIST_LIMIT) -> list[Submission]:
        with self._lock:
            newest_first = list(reversed(self._submissions))
        # Stable sort keeps reverse insertion order for equal timestamps
        newest_first.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy() for s in newest_first[: _clamp_limit(limit)]]

    def count(self) -> int:
        with self._lock:
            return len(self._submissions)

    def is_available(self) -> bool:
        return True

    def status_label(self) -> str:
        return STATUS_IN_MEMORY


class DynamoDBSubmissionStore(SubmissionStore):
    """Store backed by a DynamoDB table.

    Items live in a single partition with a sort key of
    ``<created_at>#<submission_id>``, so a descending query returns the
    newest submissions first.
    """

    def __init__(self, table):
        """Initialize the store.

        Args:
            table: DynamoDB table for submissions
        """
        self.table = table

    def append(self, record: NewSubmission) -> str:
        """Store a submission.

        Raises:
            StorageUnavailableError: On database errors
        """
        submission = _new_submission(record)
        item = submission.model_dump()
        item["partition_key"] = SUBMISSIONS_PARTITION
        item["sort_key"] = f"{submission.created_at}#{submission.submission_id}"

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(sort_key)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to store submission: %s", e)
            raise StorageUnavailableError(f"Failed to store submission: {e}") from e
        return submission.submission_id

    def list_recent(self, limit: int = MAX_LIST_LIMIT) -> list[Submission]:
        """Get the most recent submissions.

        Raises:
            StorageUnavailableError: On database errors
        """
        limit = _clamp_limit(limit)
        if limit == 0:
            return []

        try:
            response = self.table.query(
                KeyConditionExpression=Key("partition_key").eq(SUBMISSIONS_PARTITION),
                ScanIndexForward=False,  # Newest first
                Limit=limit,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to list submissions: %s", e)
            raise StorageUnavailableError(f"Failed to list submissions: {e}") from e

        return [
            Submission(
                submission_id=item["submission_id"],
                name=item["name"],
                email=item["email"],
                message=item["message"],
                created_at=item["created_at"],
                ip_address=item.get("ip_address", "unknown"),
            )
            for item in response.get("Items", [])
        ]

    def count(self) -> int:
        """Count stored submissions, following query pagination.

        Raises:
            StorageUnavailableError: On database errors
        """
        query_kwargs = {
            "KeyConditionExpression": Key("partition_key").eq(SUBMISSIONS_PARTITION),
            "Select": "COUNT",
        }
        total = 0
        try:
            while True:
                response = self.table.query(**query_kwargs)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return total
                query_kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to count submissions: %s", e)
            raise StorageUnavailableError(f"Failed to count submissions: {e}") from e

    def is_available(self) -> bool:
        try:
            self.table.load()
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning("Submissions table unavailable: %s", e)
            return False


def create_submissions_table(dynamodb, table_name: str):
    """Create the submissions table and wait until it exists.

    Args:
        dynamodb: boto3 DynamoDB service resource
        table_name: Name of the table to create

    Returns:
        The created table resource
    """
    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "partition_key", "KeyType": "HASH"},
            {"AttributeName": "sort_key", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "partition_key", "AttributeType": "S"},
            {"AttributeName": "sort_key", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    table.wait_until_exists()
    logger.info("Created submissions table %s", table_name)
    return table
