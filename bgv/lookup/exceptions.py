from bgv.database.models import LookupRecord


class VerificationError(Exception):
    """Base exception for all verification-engine errors."""


class LookupValidationError(VerificationError):
    """Raised when lookup input is empty, malformed or missing a prerequisite."""


class MissingEmployerError(LookupValidationError):
    """Raised when no latest employer can be derived from the work history."""


class VerifiedDocumentLockedError(VerificationError):
    """Raised when editing a document that is already verified."""


class InvalidTransitionError(VerificationError):
    """Raised when a document state transition is not allowed from the current state."""


class RecordNotFoundError(VerificationError):
    """Raised when a required row is missing from the database."""


class ProviderError(VerificationError):
    """Raised when a verification provider call fails. The message is the provider's own."""


class ProviderStepError(ProviderError):
    """Raised when one step of a multi-step provider pipeline fails."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step


class ProviderRejectedError(ProviderError):
    """Raised when the provider completed the call but reported a failure status.

    ``record`` is the failure record appended for the answer, when there is one.
    """

    def __init__(
        self, message: str, status_code: int, record: LookupRecord | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.record = record


class AmbiguousSuccessError(ProviderRejectedError):
    """Raised when status 1 arrives with a string message instead of structured data."""
