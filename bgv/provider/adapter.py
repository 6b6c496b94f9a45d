from typing import Any

from bgv.database.repositories.api_call_log_repository import ApiCallLogRepository
from bgv.logging.logger import Log
from bgv.lookup.exceptions import ProviderError, ProviderStepError
from bgv.provider.client_base import BaseProviderClient
from bgv.provider.exceptions import ProviderTransportError
from bgv.provider.models import (
    REPLY_COMPLETED,
    REPLY_PENDING,
    LookupRequest,
    ProviderReply,
    ProviderResult,
)
from bgv.provider.pipeline import PipelineRun, ProviderPipeline

STEP_LOOKUP = "lookup"


class ProviderAdapter:
    """Single entry point to the verification provider.

    ``execute`` merges the encrypt/transmit/decrypt protocol into one logical call.
    ``submit`` starts a lookup the provider may answer now or defer.
    Neither retries: a retry is a new attempt with a fresh transaction id.
    """

    def __init__(
        self,
        client: BaseProviderClient,
        call_log: ApiCallLogRepository | None = None,
    ) -> None:
        self._client = client
        self._pipeline = ProviderPipeline(client, call_log=call_log)

    def execute(
        self,
        transaction_id: str,
        doc_type: str,
        doc_number: str,
        *,
        candidate_id: str | None = None,
        organization_id: str | None = None,
        **extra: Any,
    ) -> ProviderResult:
        """Run the three-step pipeline. Step failures come back as a failed result."""
        run = PipelineRun(
            transaction_id=transaction_id,
            doc_type=doc_type,
            doc_number=doc_number,
            extra=extra,
            candidate_id=candidate_id,
            organization_id=organization_id,
        )
        Log.info(f"Provider pipeline started: {doc_type} transaction {transaction_id}")
        result = self._pipeline.run(run).to_result()
        if result.succeeded:
            Log.info(f"Provider pipeline succeeded: transaction {transaction_id}")
        elif not result.failed:
            Log.warning(
                f"Provider pipeline finished with status {result.status}: "
                f"transaction {transaction_id}"
            )
        return result

    def submit(self, request: LookupRequest) -> ProviderReply:
        """Invoke the deferrable lookup.

        Raises:
            ProviderStepError: if the call fails; the provider message is kept.
            ProviderError: if the reply status is neither completed nor pending.
            UnknownRouteError: if no lookup path is configured for the request route.
        """
        try:
            response = self._client.invoke_lookup(request.to_payload(), request.route)
        except ProviderTransportError as exc:
            raise ProviderStepError(STEP_LOOKUP, str(exc)) from exc

        body = response.body
        status = body.get("status")
        if status == REPLY_COMPLETED:
            return ProviderReply(status=REPLY_COMPLETED, data=body.get("data"))
        if status == REPLY_PENDING:
            message = body.get("message") or "Verification is in progress."
            Log.info(
                f"Provider deferred {request.lookup_method} lookup on {request.route}: {message}",
                candidate_id=request.candidate_id,
            )
            return ProviderReply(status=REPLY_PENDING, message=message)
        raise ProviderError(
            body.get("message") or f"Unexpected lookup reply status: {status!r}"
        )

    def close(self) -> None:
        self._client.close()
