"""
Error taxonomy for Rollcall.

Input defects and enrollment policy violations subclass ValueError so they
read naturally at the call site. "Not recognized" and "already marked" are
attendance outcomes (see attendance.AttendanceOutcome), not exceptions.
"""


class RollcallError(Exception):
    """Base class for all Rollcall errors."""


class InvalidEmbedding(RollcallError, ValueError):
    """Embedding has the wrong shape or contains non-finite values."""

    def __init__(self, reason: str, index: int = None):
        self.reason = reason
        self.index = index
        if index is None:
            message = f"Invalid embedding: {reason}"
        else:
            message = f"Invalid embedding at index {index}: {reason}"
        super().__init__(message)


class EnrollmentError(RollcallError, ValueError):
    """Enrollment request violates a registration policy."""


class DuplicateIdentity(EnrollmentError):
    """An identity with this external key is already enrolled."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Identity already enrolled: {key}")


class InsufficientSamples(EnrollmentError):
    """Fewer embeddings than the enrollment minimum were supplied."""

    def __init__(self, received: int, required: int):
        self.received = received
        self.required = required
        super().__init__(
            f"At least {required} face embeddings are required, got {received}"
        )


class TooManySamples(EnrollmentError):
    """More embeddings than a single enrollment accepts."""

    def __init__(self, received: int, limit: int):
        self.received = received
        self.limit = limit
        super().__init__(
            f"At most {limit} face embeddings are accepted, got {received}"
        )


class MissingAttributes(EnrollmentError):
    """Required identity fields are missing or blank."""

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class StoreUnavailable(RollcallError):
    """The persistent store could not be read or written."""
