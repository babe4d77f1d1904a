"""Exception hierarchy for calendar invite generation.

Every failure raised by the core is local and synchronous: nothing is
retried and no partial payload is ever returned.
"""

from enum import Enum
from typing import Optional


class InviteError(Exception):
    """Base exception for all calendar invite errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationErrorKind(str, Enum):
    """Categories of event validation failures."""

    INVALID_VALUE = "invalid_value"
    EMPTY_EMAIL = "empty_email"
    MALFORMED_EMAIL = "malformed_email"
    INVALID_TIME_RANGE = "invalid_time_range"
    MISSING_ORGANIZER_EMAIL = "missing_organizer_email"
    MISSING_FIELD = "missing_field"
    INVALID_DATETIME = "invalid_datetime"
    INVALID_UID = "invalid_uid"


class ValidationError(InviteError):
    """Raised when event input is malformed.

    The offending field is always reported so that the caller can point the
    user at the form input that needs correcting.
    """

    kind: ValidationErrorKind = ValidationErrorKind.INVALID_VALUE

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid value for {field}")
        self.field = field


class EmptyEmailError(ValidationError):
    """An attendee was given without an email address."""

    kind = ValidationErrorKind.EMPTY_EMAIL


class MalformedEmailError(ValidationError):
    """An email address does not contain an ``@``."""

    kind = ValidationErrorKind.MALFORMED_EMAIL


class InvalidTimeRangeError(ValidationError):
    """The event end is not after its start."""

    kind = ValidationErrorKind.INVALID_TIME_RANGE


class MissingOrganizerEmailError(ValidationError):
    """An organizer was given without an email address."""

    kind = ValidationErrorKind.MISSING_ORGANIZER_EMAIL


class MissingFieldError(ValidationError):
    """A mandatory field (start, end) is absent."""

    kind = ValidationErrorKind.MISSING_FIELD


class InvalidDateTimeError(ValidationError):
    """A date/time value or timezone name could not be interpreted."""

    kind = ValidationErrorKind.INVALID_DATETIME


class InvalidUidError(ValidationError):
    """A UID or UID domain does not have the required shape."""

    kind = ValidationErrorKind.INVALID_UID


class NotFoundError(InviteError):
    """No stored snapshot exists for a UID that is being cancelled.

    Recoverable: supply the original event directly, or report that an
    unknown meeting cannot be cancelled.
    """

    def __init__(self, uid: str, message: Optional[str] = None):
        super().__init__(message or f"No stored invite metadata for UID {uid!r}")
        self.uid = uid


class MalformedInputError(InviteError):
    """Text is not valid UTF-8 or a calendar payload cannot be parsed."""
