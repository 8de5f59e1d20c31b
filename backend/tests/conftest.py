"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest

from models.submission import NewSubmission
from services.submission_store import InMemorySubmissionStore


@pytest.fixture
def valid_payload():
    """Create a raw form payload that passes validation."""
    return {
        "name": "Jane Doe",
        "email": "JANE@Example.com",
        "message": "Hello, this is a test message.",
    }


@pytest.fixture
def new_submission():
    """Create a validated submission ready for storage."""
    return NewSubmission(
        name="Jane Doe",
        email="jane@example.com",
        message="Hello, this is a test message.",
        ip_address="203.0.113.7",
    )


@pytest.fixture
def memory_store():
    """Create an empty in-memory submission store."""
    return InMemorySubmissionStore()


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    mock_table = Mock()
    mock_table.put_item.return_value = {}
    mock_table.query.return_value = {"Items": [], "Count": 0}
    mock_table.load.return_value = None
    return mock_table
