"""Form submission data models."""

from pydantic import BaseModel, Field


class SubmissionForm(BaseModel):
    """Validated and normalized contact form fields."""

    name: str
    email: str
    message: str


class NewSubmission(SubmissionForm):
    """A validated form plus request metadata, ready to be stored."""

    ip_address: str = "unknown"


class Submission(BaseModel):
    """Stored submission record."""

    submission_id: str
    name: str
    email: str
    message: str
    created_at: str
    ip_address: str


class SubmissionSummary(BaseModel):
    """Public view of a submission (IP address redacted)."""

    id: str
    name: str
    email: str
    message: str
    created_at: str = Field(serialization_alias="createdAt")

    @classmethod
    def from_submission(cls, submission: Submission) -> "SubmissionSummary":
        return cls(
            id=submission.submission_id,
            name=submission.name,
            email=submission.email,
            message=submission.message,
            created_at=submission.created_at,
        )
