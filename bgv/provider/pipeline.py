"""Encrypt -> transmit -> decrypt provider protocol as an explicit state machine.

Each step talks to a different endpoint. A failure at any step moves the run to
FAILED with that step's name and message, and no later step is invoked.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bgv.database.models import ApiCallLog
from bgv.database.repositories.api_call_log_repository import ApiCallLogRepository
from bgv.logging.logger import Log
from bgv.provider.client_base import BaseProviderClient
from bgv.provider.exceptions import ProviderTransportError
from bgv.provider.models import ProviderResponse, ProviderResult

STEP_ENCRYPT = "encrypt"
STEP_TRANSMIT = "transmit"
STEP_DECRYPT = "decrypt"


class PipelineStage(str, Enum):
    AWAITING_ENCRYPT = "awaiting_encrypt"
    AWAITING_TRANSMIT = "awaiting_transmit"
    AWAITING_DECRYPT = "awaiting_decrypt"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({PipelineStage.DONE, PipelineStage.FAILED})


class StepFailure(Exception):
    """Internal signal: the current step produced an unusable response."""


@dataclass
class PipelineRun:
    """Mutable state of one pipeline attempt."""

    transaction_id: str
    doc_type: str
    doc_number: str
    extra: dict[str, Any] = field(default_factory=dict)
    candidate_id: str | None = None
    organization_id: str | None = None
    stage: PipelineStage = PipelineStage.AWAITING_ENCRYPT
    request_token: str | None = None
    response_token: str | None = None
    decrypted: dict[str, Any] | None = None
    failed_step: str | None = None
    error_message: str | None = None

    @property
    def finished(self) -> bool:
        return self.stage in TERMINAL_STAGES

    def fail(self, step: str, message: str) -> None:
        self.stage = PipelineStage.FAILED
        self.failed_step = step
        self.error_message = message

    def to_result(self) -> ProviderResult:
        if self.stage is PipelineStage.FAILED:
            return ProviderResult(
                transaction_id=self.transaction_id,
                error_message=self.error_message,
                failed_step=self.failed_step,
            )
        if self.stage is not PipelineStage.DONE or self.decrypted is None:
            raise RuntimeError(f"Pipeline run is not finished (stage={self.stage.value})")
        status = self.decrypted.get("status")
        return ProviderResult(
            transaction_id=self.transaction_id,
            status=status if isinstance(status, int) else None,
            payload=self.decrypted.get("msg"),
            error_message=self.decrypted.get("error") or None,
        )


class ProviderPipeline:
    """Drives a PipelineRun to a terminal stage against a provider client."""

    def __init__(
        self,
        client: BaseProviderClient,
        call_log: ApiCallLogRepository | None = None,
    ) -> None:
        self._client = client
        self._call_log = call_log
        self._steps: dict[PipelineStage, str] = {
            PipelineStage.AWAITING_ENCRYPT: STEP_ENCRYPT,
            PipelineStage.AWAITING_TRANSMIT: STEP_TRANSMIT,
            PipelineStage.AWAITING_DECRYPT: STEP_DECRYPT,
        }
        self._calls: dict[str, Callable[[str, dict[str, Any]], ProviderResponse]] = {
            STEP_ENCRYPT: client.encrypt,
            STEP_TRANSMIT: client.transmit,
            STEP_DECRYPT: client.decrypt,
        }

    def run(self, run: PipelineRun) -> PipelineRun:
        while not run.finished:
            self.advance(run)
        return run

    def advance(self, run: PipelineRun) -> PipelineRun:
        """Execute exactly one step from the run's current stage."""
        if run.finished:
            return run
        step = self._steps[run.stage]
        payload = self._build_payload(run, step)
        response: ProviderResponse | None = None
        http_status: int | None = None
        raw_body: str | None = None
        try:
            response = self._calls[step](run.doc_type, payload)
            self._accept(run, step, response)
        except ProviderTransportError as exc:
            http_status, raw_body = exc.http_status, exc.raw_body
            run.fail(step, str(exc))
        except StepFailure as exc:
            run.fail(step, str(exc))

        if response is not None:
            http_status, raw_body = response.http_status, response.raw
        failed = run.stage is PipelineStage.FAILED
        self._record(
            run,
            step,
            payload,
            success=not failed,
            http_status=http_status,
            raw_body=raw_body,
        )
        if failed:
            Log.error(
                f"Provider {step} step failed for transaction {run.transaction_id}: "
                f"{run.error_message}"
            )
        return run

    @staticmethod
    def _build_payload(run: PipelineRun, step: str) -> dict[str, Any]:
        if step == STEP_ENCRYPT:
            return {
                "transId": run.transaction_id,
                "docType": run.doc_type,
                "docNumber": run.doc_number,
                **run.extra,
            }
        if step == STEP_TRANSMIT:
            return {"requestData": run.request_token}
        return {"responseData": run.response_token}

    @staticmethod
    def _accept(run: PipelineRun, step: str, response: ProviderResponse) -> None:
        body = response.body
        if step == STEP_ENCRYPT:
            token = body.get("requestData") or body.get("responseData")
            if not isinstance(token, str) or not token:
                raise StepFailure("Missing requestData in encryption response")
            run.request_token = token
            run.stage = PipelineStage.AWAITING_TRANSMIT
        elif step == STEP_TRANSMIT:
            token = body.get("responseData")
            if not isinstance(token, str) or not token:
                raise StepFailure("Missing responseData in verification response")
            run.response_token = token
            run.stage = PipelineStage.AWAITING_DECRYPT
        else:
            if "status" not in body and "msg" not in body:
                raise StepFailure(
                    "Incomplete data or unexpected status in decryption response"
                )
            run.decrypted = body
            run.stage = PipelineStage.DONE

    def _record(
        self,
        run: PipelineRun,
        step: str,
        payload: dict[str, Any],
        *,
        success: bool,
        http_status: int | None,
        raw_body: str | None,
    ) -> None:
        if self._call_log is None:
            return
        try:
            endpoints = self._client.endpoints_for(run.doc_type)
            self._call_log.record(
                ApiCallLog(
                    transaction_id=run.transaction_id,
                    api_type=f"{endpoints.api_prefix}_{step}",
                    endpoint_name=getattr(endpoints, step),
                    success=success,
                    candidate_id=run.candidate_id,
                    organization_id=run.organization_id,
                    request_payload=payload,
                    response_status_http=http_status,
                    response_body=raw_body,
                    error_message=None if success else run.error_message,
                )
            )
        except Exception as exc:
            Log.warning(f"Failed to record {step} call log for {run.transaction_id}: {exc}")
