from collections.abc import Callable
from typing import Any

import pytest

from bgv.database.models import LookupRecord
from bgv.lookup.models import LookupContext


@pytest.fixture()
def lookup_context() -> LookupContext:
    """Context with every optional prerequisite filled in."""
    return LookupContext(
        organization_id="org-1",
        user_id="user-1",
        candidate_mobile="+91 98765-43210",
        employer_name="Acme Pvt. Ltd. (India)",
    )


@pytest.fixture()
def make_record() -> Callable[..., LookupRecord]:
    """Build LookupRecords with sensible defaults."""

    def _make(**overrides: Any) -> LookupRecord:
        fields: dict[str, Any] = {
            "id": 1,
            "candidate_id": "cand-1",
            "organization_id": "org-1",
            "lookup_type": "mobile_to_uan",
            "lookup_value": "9876543210",
            "status_code": 1,
            "response_data": {"status": 1, "msg": {"uan": "100200300400"}},
        }
        fields.update(overrides)
        return LookupRecord(**fields)

    return _make
