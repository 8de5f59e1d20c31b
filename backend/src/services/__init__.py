"""Services for the Form Submission API backend."""

from .submission_store import (
    DynamoDBSubmissionStore,
    InMemorySubmissionStore,
    StorageUnavailableError,
    SubmissionStore,
)
from .submission_validator import FieldError, ValidationResult, validate_submission

__all__ = [
    "SubmissionStore",
    "InMemorySubmissionStore",
    "DynamoDBSubmissionStore",
    "StorageUnavailableError",
    "FieldError",
    "ValidationResult",
    "validate_submission",
]
