import logging

from bgv.logging.logger import ContextFormatter


def _format(**extra: object) -> str:
    record = logging.makeLogRecord(
        {"msg": "Lookup already queued", "levelname": "INFO", **extra}
    )
    return ContextFormatter("[%(levelname)s] %(message)s").format(record)


class TestContextFormatter:
    def test_plain_message_unchanged(self) -> None:
        assert _format() == "[INFO] Lookup already queued"

    def test_context_appended_sorted(self) -> None:
        line = _format(lookup_type="pan_to_uan", candidate_id="cand-1")
        assert line == "[INFO] Lookup already queued [candidate_id=cand-1 lookup_type=pan_to_uan]"

    def test_none_values_skipped(self) -> None:
        assert _format(candidate_id=None) == "[INFO] Lookup already queued"
