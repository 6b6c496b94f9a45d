"""Per-document verification state.

A document is in exactly one phase: Idle, Editing, Verifying, Verified or
Failed(reason). States are immutable; every transition returns a new state and
illegal transitions raise instead of mutating anything.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from bgv.lookup.exceptions import InvalidTransitionError, VerifiedDocumentLockedError
from bgv.verification.models import DualEmploymentResult

LOCKED_MESSAGE = "Verified documents cannot be edited. Please contact admin to update them."


class Phase(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class DocumentState:
    value: str = ""
    phase: Phase = Phase.IDLE
    verification_date: datetime | None = None
    failure_reason: str | None = None
    results: tuple[DualEmploymentResult, ...] = ()
    details_expanded: bool = False

    @property
    def is_editing(self) -> bool:
        return self.phase is Phase.EDITING

    @property
    def is_verifying(self) -> bool:
        return self.phase is Phase.VERIFYING

    @property
    def is_verified(self) -> bool:
        return self.phase is Phase.VERIFIED

    @property
    def error(self) -> str | None:
        return self.failure_reason if self.phase is Phase.FAILED else None

    def start_editing(self) -> "DocumentState":
        self._ensure_unlocked()
        if self.phase is Phase.VERIFYING:
            raise InvalidTransitionError("Cannot edit a document while it is being verified")
        return replace(self, phase=Phase.EDITING)

    def stop_editing(self) -> "DocumentState":
        if self.phase is not Phase.EDITING:
            return self
        return replace(self, phase=Phase.IDLE)

    def toggle_editing(self) -> "DocumentState":
        return self.stop_editing() if self.is_editing else self.start_editing()

    def change_value(self, value: str) -> "DocumentState":
        self._ensure_unlocked()
        if self.phase is Phase.VERIFYING:
            raise InvalidTransitionError("Cannot change a document while it is being verified")
        return replace(self, value=value)

    def start_verifying(self, value: str | None = None) -> "DocumentState":
        self._ensure_unlocked()
        if self.phase is Phase.VERIFYING:
            raise InvalidTransitionError("Verification is already in progress")
        return replace(
            self,
            value=self.value if value is None else value,
            phase=Phase.VERIFYING,
            failure_reason=None,
        )

    def mark_verified(
        self,
        results: tuple[DualEmploymentResult, ...] | list[DualEmploymentResult] = (),
        verified_at: datetime | None = None,
        value: str | None = None,
        expand_details: bool = False,
    ) -> "DocumentState":
        """Enter Verified. Repeating it on a verified document changes nothing."""
        if self.phase is Phase.VERIFIED:
            return self
        return replace(
            self,
            value=self.value if value is None else value,
            phase=Phase.VERIFIED,
            verification_date=verified_at or datetime.now(timezone.utc),
            failure_reason=None,
            results=tuple(results),
            details_expanded=expand_details or self.details_expanded,
        )

    def mark_failed(self, reason: str) -> "DocumentState":
        if self.phase is Phase.VERIFIED:
            raise InvalidTransitionError("A verified document cannot fail verification")
        return replace(
            self,
            phase=Phase.FAILED,
            failure_reason=reason,
            results=(),
            details_expanded=False,
        )

    def toggle_details(self) -> "DocumentState":
        return replace(self, details_expanded=not self.details_expanded)

    def _ensure_unlocked(self) -> None:
        if self.phase is Phase.VERIFIED:
            raise VerifiedDocumentLockedError(LOCKED_MESSAGE)
