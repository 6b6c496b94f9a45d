from dataclasses import dataclass
from typing import Any

from bgv.database.models import NOT_FOUND_STATUS, SUCCESS_STATUS

REPLY_COMPLETED = "completed"
REPLY_PENDING = "pending"

TRUTHSCREEN = "truthscreen"
GRIDLINES = "gridlines"
VERIFICATION_PROVIDERS = (TRUTHSCREEN, GRIDLINES)

# Deferrable invocation that only serves the basic UAN employment history.
FULL_HISTORY_ROUTE = "full_history"

# Lookup types served by one route whatever the organization prefers.
PINNED_ROUTES: dict[str, str] = {
    "uan_full_history": FULL_HISTORY_ROUTE,
    "uan_full_history_gl": GRIDLINES,
}

# Gridlines answers carry a string code in data.code instead of a numeric status.
GRIDLINES_SUCCESS_CODES = frozenset({"1013", "1014", "1016", "1022", "1029"})
GRIDLINES_NOT_FOUND_CODES = frozenset({"1007", "1011", "1015", "1023", "1030"})


def route_for(lookup_type: str, organization_provider: str) -> str:
    return PINNED_ROUTES.get(lookup_type, organization_provider)


@dataclass(frozen=True)
class ProviderResponse:
    """Raw HTTP-level answer from one provider endpoint."""

    http_status: int
    body: dict[str, Any]
    raw: str = ""


@dataclass(frozen=True)
class ProviderResult:
    """Outcome of a multi-step provider pipeline."""

    transaction_id: str
    status: int | None = None
    payload: Any = None
    error_message: str | None = None
    failed_step: str | None = None

    @property
    def failed(self) -> bool:
        return self.failed_step is not None

    @property
    def succeeded(self) -> bool:
        return (
            not self.failed
            and self.status == SUCCESS_STATUS
            and isinstance(self.payload, (dict, list))
        )

    @property
    def ambiguous(self) -> bool:
        """Status 1 with a string message: an error delivered through the success channel."""
        return not self.failed and self.status == SUCCESS_STATUS and isinstance(self.payload, str)

    @property
    def message(self) -> str:
        if self.error_message:
            return self.error_message
        if isinstance(self.payload, str) and self.payload:
            return self.payload
        return "Verification failed."


@dataclass(frozen=True)
class LookupRequest:
    """Body of the deferrable lookup invocation."""

    lookup_method: str
    lookup_value: str
    candidate_id: str
    organization_id: str
    user_id: str | None = None
    candidate_mobile: str | None = None
    route: str = TRUTHSCREEN
    doc_type: str | None = None
    transaction_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "lookupMethod": self.lookup_method,
            "lookupValue": self.lookup_value,
            "candidateId": self.candidate_id,
            "organizationId": self.organization_id,
            "userId": self.user_id,
        }
        if self.candidate_mobile:
            payload["candidateMobile"] = self.candidate_mobile
        if self.doc_type:
            payload["docType"] = self.doc_type
        if self.transaction_id:
            payload["transID"] = self.transaction_id
        return payload


@dataclass(frozen=True)
class ProviderReply:
    """Answer to a deferrable lookup: completed with data, or pending with a message."""

    status: str
    data: Any = None
    message: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == REPLY_PENDING

    @property
    def status_code(self) -> int | None:
        if not isinstance(self.data, dict):
            return None
        if isinstance(self.data.get("status"), int):
            return self.data["status"]
        code = self._gridlines_code
        if code in GRIDLINES_SUCCESS_CODES:
            return SUCCESS_STATUS
        if code in GRIDLINES_NOT_FOUND_CODES:
            return NOT_FOUND_STATUS
        return int(code) if code and code.isdigit() else None

    @property
    def payload(self) -> Any:
        """The answer body: ``msg`` from the status form, ``data`` from the code form."""
        if not isinstance(self.data, dict):
            return None
        if "msg" in self.data:
            return self.data["msg"]
        return self.data.get("data")

    @property
    def _gridlines_code(self) -> str | None:
        inner = self.data.get("data")
        if isinstance(inner, dict) and inner.get("code") is not None:
            return str(inner["code"])
        return None


@dataclass(frozen=True)
class PipelineEndpoints:
    """Endpoint paths of one encrypt/transmit/decrypt pipeline."""

    encrypt: str
    transmit: str
    decrypt: str
    api_prefix: str = "provider"
