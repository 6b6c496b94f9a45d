from dataclasses import dataclass
from enum import Enum

from bgv.database.models import LookupRecord


class LookupType(str, Enum):
    MOBILE_TO_UAN = "mobile_to_uan"
    PAN_TO_UAN = "pan_to_uan"
    UAN_FULL_HISTORY = "uan_full_history"
    PAN_VERIFICATION = "pan_verification"
    LATEST_EMPLOYMENT_MOBILE = "latest_employment_mobile"
    LATEST_PASSBOOK_MOBILE = "latest_passbook_mobile"
    LATEST_EMPLOYMENT_UAN = "latest_employment_uan"
    UAN_FULL_HISTORY_GL = "uan_full_history_gl"

    @classmethod
    def resolve(cls, raw: "str | LookupType") -> "LookupType":
        """Resolve a lookup type or a lookup method alias ('mobile', 'pan')."""
        if isinstance(raw, LookupType):
            return raw
        key = raw.strip().lower()
        alias = LOOKUP_METHOD_ALIASES.get(key)
        if alias is not None:
            return alias
        return cls(key)

    @property
    def lookup_method(self) -> str:
        """Method name the deferrable provider invocation expects."""
        return _LOOKUP_METHODS[self]


LOOKUP_METHOD_ALIASES: dict[str, LookupType] = {
    "mobile": LookupType.MOBILE_TO_UAN,
    "pan": LookupType.PAN_TO_UAN,
}

_LOOKUP_METHODS: dict[LookupType, str] = {
    LookupType.MOBILE_TO_UAN: "mobile",
    LookupType.PAN_TO_UAN: "pan",
    LookupType.UAN_FULL_HISTORY: "uan_full_history",
    LookupType.PAN_VERIFICATION: "pan_verification",
    LookupType.LATEST_EMPLOYMENT_MOBILE: "latest_employment_mobile",
    LookupType.LATEST_PASSBOOK_MOBILE: "latest_passbook_mobile",
    LookupType.LATEST_EMPLOYMENT_UAN: "latest_employment_uan",
    LookupType.UAN_FULL_HISTORY_GL: "uan_full_history_gl",
}

MOBILE_LOOKUP_TYPES = frozenset(
    {
        LookupType.MOBILE_TO_UAN,
        LookupType.LATEST_EMPLOYMENT_MOBILE,
        LookupType.LATEST_PASSBOOK_MOBILE,
    }
)

UAN_LOOKUP_TYPES = frozenset(
    {
        LookupType.UAN_FULL_HISTORY,
        LookupType.LATEST_EMPLOYMENT_UAN,
        LookupType.UAN_FULL_HISTORY_GL,
    }
)

# Types shown in a candidate's verification audit trail.
BGV_LOOKUP_TYPES: tuple[str, ...] = tuple(t.value for t in LookupType)


@dataclass(frozen=True)
class LookupContext:
    """Caller-side facts a lookup may need beyond the value itself."""

    organization_id: str
    user_id: str | None = None
    candidate_mobile: str | None = None
    employer_name: str | None = None


@dataclass(frozen=True)
class CachedNotFound:
    """A definitive not-found answered from the negative cache. No provider call was made."""

    record: LookupRecord


@dataclass(frozen=True)
class AlreadyQueued:
    lookup_type: LookupType


@dataclass(frozen=True)
class Completed:
    record: LookupRecord

    @property
    def data(self) -> object:
        return self.record.response_data


@dataclass(frozen=True)
class Queued:
    lookup_type: LookupType
    message: str = ""


LookupOutcome = CachedNotFound | AlreadyQueued | Completed | Queued
