"""Input normalization and validation for lookups."""

import re

from bgv.lookup.exceptions import LookupValidationError
from bgv.lookup.models import (
    MOBILE_LOOKUP_TYPES,
    UAN_LOOKUP_TYPES,
    LookupContext,
    LookupType,
)

_NON_DIGITS = re.compile(r"\D")
_UAN_PATTERN = re.compile(r"^\d{12}$")
_PARENTHESIZED = re.compile(r"\s*\([^)]*\)")
_COMPANY_PUNCTUATION = re.compile(r"[,|.]")


def sanitize_mobile(value: str) -> str:
    """Strip non-digits and keep the last 10 digits."""
    return _NON_DIGITS.sub("", value or "")[-10:]


def clean_company_name(name: str) -> str:
    """Drop parenthesized parts and commas, pipes and dots from an employer name."""
    cleaned = _PARENTHESIZED.sub("", name or "").strip()
    return _COMPANY_PUNCTUATION.sub("", cleaned).strip()


def normalize_value(lookup_type: LookupType, raw_value: str | None) -> str:
    """Return the normalized lookup value.

    Raises:
        LookupValidationError: if the value is empty after normalization or malformed.
    """
    raw = (raw_value or "").strip()
    if lookup_type in MOBILE_LOOKUP_TYPES:
        value = sanitize_mobile(raw)
    elif lookup_type in (LookupType.PAN_TO_UAN, LookupType.PAN_VERIFICATION):
        value = raw.upper()
    else:
        value = raw

    if not value:
        raise LookupValidationError(f"{lookup_type.value} lookup value cannot be empty")
    if lookup_type in UAN_LOOKUP_TYPES and not _UAN_PATTERN.match(value):
        raise LookupValidationError("UAN must be a 12-digit number")
    return value


def require_organization(context: LookupContext) -> None:
    if not context.organization_id:
        raise LookupValidationError("Organization is required for a lookup")


def validate_context(lookup_type: LookupType, context: LookupContext) -> LookupContext:
    """Check per-type prerequisites and return the context with normalized fields.

    Raises:
        LookupValidationError: if a prerequisite is missing.
    """
    require_organization(context)

    if lookup_type is LookupType.PAN_TO_UAN:
        mobile = sanitize_mobile(context.candidate_mobile or "")
        if not mobile:
            raise LookupValidationError(
                "Candidate mobile number is required for a PAN lookup"
            )
        return LookupContext(
            organization_id=context.organization_id,
            user_id=context.user_id,
            candidate_mobile=mobile,
            employer_name=context.employer_name,
        )

    if lookup_type is LookupType.UAN_FULL_HISTORY:
        employer = clean_company_name(context.employer_name or "")
        if not employer:
            raise LookupValidationError(
                "Employer name is required for dual employment check"
            )
        return LookupContext(
            organization_id=context.organization_id,
            user_id=context.user_id,
            candidate_mobile=context.candidate_mobile,
            employer_name=employer,
        )

    return context
