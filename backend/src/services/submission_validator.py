"""Validation and normalization of contact form payloads.

Each field has an ordered tuple of rules. A rule is a predicate over the
normalized value plus the message reported when it fails. All failing rules
of a field are reported, so a caller sees every problem in one round trip.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from email_validator import EmailNotValidError, validate_email

from models.submission import SubmissionForm

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255
MESSAGE_MIN_LENGTH = 10
MESSAGE_MAX_LENGTH = 1000

# Letters and whitespace only; hyphens and apostrophes are rejected
NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")


@dataclass(frozen=True)
class FieldError:
    """A single rule violation for one field."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a payload: a normalized form or a list of errors."""

    form: SubmissionForm | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.form is not None and not self.errors


@dataclass(frozen=True)
class Rule:
    check: Callable[[str], bool]
    message: str


def _is_valid_email_syntax(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _normalize_text(value: str) -> str:
    return value.strip()


def _normalize_email(value: str) -> str:
    return value.strip().lower()


NAME_RULES = (
    Rule(
        lambda v: NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH,
        f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
    ),
    Rule(
        lambda v: NAME_PATTERN.match(v) is not None,
        "Name can only contain letters and spaces",
    ),
)

EMAIL_RULES = (
    Rule(_is_valid_email_syntax, "Please enter a valid email address"),
    Rule(
        lambda v: len(v) <= EMAIL_MAX_LENGTH,
        f"Email must be less than {EMAIL_MAX_LENGTH} characters",
    ),
)

MESSAGE_RULES = (
    Rule(
        lambda v: MESSAGE_MIN_LENGTH <= len(v) <= MESSAGE_MAX_LENGTH,
        f"Message must be between {MESSAGE_MIN_LENGTH} and "
        f"{MESSAGE_MAX_LENGTH} characters",
    ),
)

# field name, label used in messages, normalizer, rules
FIELDS: tuple[tuple[str, str, Callable[[str], str], tuple[Rule, ...]], ...] = (
    ("name", "Name", _normalize_text, NAME_RULES),
    ("email", "Email", _normalize_email, EMAIL_RULES),
    ("message", "Message", _normalize_text, MESSAGE_RULES),
)


def validate_field(
    name: str,
    label: str,
    raw_value: object,
    normalize: Callable[[str], str],
    rules: tuple[Rule, ...],
) -> tuple[str | None, list[FieldError]]:
    """Normalize one raw value and run its rules.

    Returns:
        Tuple of (normalized value or None, errors for this field)
    """
    if raw_value is None:
        return None, [FieldError(name, f"{label} is required")]
    if not isinstance(raw_value, str):
        return None, [FieldError(name, f"{label} must be text")]

    value = normalize(raw_value)
    if not value:
        return None, [FieldError(name, f"{label} is required")]

    errors = [FieldError(name, rule.message) for rule in rules if not rule.check(value)]
    return value, errors


def validate_submission(payload: Mapping[str, object]) -> ValidationResult:
    """Validate a raw form payload.

    Args:
        payload: Mapping of raw request fields; values may be missing or
            of any type

    Returns:
        ValidationResult with the normalized form when every rule passes,
        otherwise the ordered list of field errors
    """
    values: dict[str, str] = {}
    errors: list[FieldError] = []

    for name, label, normalize, rules in FIELDS:
        value, field_errors = validate_field(
            name, label, payload.get(name), normalize, rules
        )
        errors.extend(field_errors)
        if value is not None:
            values[name] = value

    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(form=SubmissionForm(**values))
