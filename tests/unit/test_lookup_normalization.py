import pytest

from bgv.lookup.exceptions import LookupValidationError
from bgv.lookup.models import LookupContext, LookupType
from bgv.lookup.normalization import (
    clean_company_name,
    normalize_value,
    sanitize_mobile,
    validate_context,
)


class TestSanitizeMobile:
    def test_keeps_last_ten_digits(self) -> None:
        assert sanitize_mobile("+91 98765-43210") == "9876543210"

    def test_short_number_is_kept(self) -> None:
        assert sanitize_mobile("12345") == "12345"

    def test_none_gives_empty(self) -> None:
        assert sanitize_mobile(None) == ""  # type: ignore[arg-type]


class TestCleanCompanyName:
    def test_removes_parenthesized_parts_and_punctuation(self) -> None:
        assert clean_company_name("Acme Pvt. Ltd. (India)") == "Acme Pvt Ltd"

    def test_removes_commas_and_pipes(self) -> None:
        assert clean_company_name("Foo, Bar | Baz") == "Foo Bar  Baz"

    def test_empty(self) -> None:
        assert clean_company_name("") == ""


class TestNormalizeValue:
    def test_mobile_reduced_to_last_ten_digits(self) -> None:
        assert normalize_value(LookupType.MOBILE_TO_UAN, " 0091-9876543210 ") == "9876543210"

    def test_pan_upper_cased_and_trimmed(self) -> None:
        assert normalize_value(LookupType.PAN_TO_UAN, "  abcde1234f ") == "ABCDE1234F"

    def test_pan_verification_upper_cased(self) -> None:
        assert normalize_value(LookupType.PAN_VERIFICATION, "abcde1234f") == "ABCDE1234F"

    def test_uan_trimmed(self) -> None:
        assert normalize_value(LookupType.UAN_FULL_HISTORY, " 100200300400 ") == "100200300400"

    @pytest.mark.parametrize("raw", ["", "   ", None, "no-digits"])
    def test_empty_mobile_raises(self, raw: str | None) -> None:
        with pytest.raises(LookupValidationError, match="cannot be empty"):
            normalize_value(LookupType.MOBILE_TO_UAN, raw)

    def test_malformed_uan_raises(self) -> None:
        with pytest.raises(LookupValidationError, match="12-digit"):
            normalize_value(LookupType.UAN_FULL_HISTORY, "12345")

    @pytest.mark.parametrize(
        "lookup_type",
        [LookupType.LATEST_EMPLOYMENT_MOBILE, LookupType.LATEST_PASSBOOK_MOBILE],
    )
    def test_mobile_based_types_sanitized(self, lookup_type: LookupType) -> None:
        assert normalize_value(lookup_type, "+91 98765-43210") == "9876543210"

    @pytest.mark.parametrize(
        "lookup_type",
        [LookupType.LATEST_EMPLOYMENT_UAN, LookupType.UAN_FULL_HISTORY_GL],
    )
    def test_uan_based_types_need_twelve_digits(self, lookup_type: LookupType) -> None:
        assert normalize_value(lookup_type, " 100200300400 ") == "100200300400"
        with pytest.raises(LookupValidationError, match="12-digit"):
            normalize_value(lookup_type, "10020030")


class TestValidateContext:
    def test_requires_organization(self) -> None:
        with pytest.raises(LookupValidationError, match="Organization"):
            validate_context(LookupType.MOBILE_TO_UAN, LookupContext(organization_id=""))

    def test_pan_lookup_requires_mobile(self) -> None:
        with pytest.raises(LookupValidationError, match="mobile"):
            validate_context(LookupType.PAN_TO_UAN, LookupContext(organization_id="org-1"))

    def test_pan_lookup_normalizes_mobile(self) -> None:
        context = validate_context(
            LookupType.PAN_TO_UAN,
            LookupContext(organization_id="org-1", candidate_mobile="+91 98765 43210"),
        )
        assert context.candidate_mobile == "9876543210"

    def test_full_history_requires_employer(self) -> None:
        with pytest.raises(LookupValidationError, match="Employer name"):
            validate_context(
                LookupType.UAN_FULL_HISTORY,
                LookupContext(organization_id="org-1", employer_name="  ( ) "),
            )

    def test_full_history_cleans_employer(self) -> None:
        context = validate_context(
            LookupType.UAN_FULL_HISTORY,
            LookupContext(organization_id="org-1", employer_name="Acme, Inc."),
        )
        assert context.employer_name == "Acme Inc"

    def test_mobile_lookup_passes_context_through(self, lookup_context: LookupContext) -> None:
        assert validate_context(LookupType.MOBILE_TO_UAN, lookup_context) is lookup_context

    def test_uan_history_on_gridlines_needs_no_employer(self) -> None:
        context = LookupContext(organization_id="org-1")
        assert validate_context(LookupType.UAN_FULL_HISTORY_GL, context) is context
