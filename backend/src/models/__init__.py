"""Data models for the Form Submission API."""

from .submission import NewSubmission, Submission, SubmissionForm, SubmissionSummary

__all__ = [
    "NewSubmission",
    "Submission",
    "SubmissionForm",
    "SubmissionSummary",
]
