import json
from typing import Any

import httpx

from bgv.logging.logger import Log
from bgv.provider.client_base import BaseProviderClient
from bgv.provider.exceptions import (
    ProviderTransportError,
    UnknownDocTypeError,
    UnknownRouteError,
)
from bgv.provider.models import PipelineEndpoints, ProviderResponse


class HttpProviderClient(BaseProviderClient):
    """Provider transport over JSON HTTP endpoints built on httpx."""

    def __init__(
        self,
        *,
        base_url: str,
        pipelines: dict[str, PipelineEndpoints],
        lookup_paths: dict[str, str],
        timeout_seconds: int,
        api_key: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._pipelines = pipelines
        self._lookup_paths = lookup_paths

    def endpoints_for(self, doc_type: str) -> PipelineEndpoints:
        endpoints = self._pipelines.get(doc_type)
        if endpoints is None:
            raise UnknownDocTypeError(
                f"No provider pipeline configured for document type '{doc_type}'"
            )
        return endpoints

    def encrypt(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        return self._post(self.endpoints_for(doc_type).encrypt, payload)

    def transmit(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        return self._post(self.endpoints_for(doc_type).transmit, payload)

    def decrypt(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        return self._post(self.endpoints_for(doc_type).decrypt, payload)

    def invoke_lookup(self, payload: dict[str, Any], route: str) -> ProviderResponse:
        path = self._lookup_paths.get(route)
        if path is None:
            raise UnknownRouteError(f"No lookup path configured for route '{route}'")
        return self._post(path, payload)

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict[str, Any]) -> ProviderResponse:
        try:
            response = self._client.post(path, json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ProviderTransportError(
                f"Network error or request timed out: Unable to reach the verification service. ({exc})"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderTransportError(f"Provider request failed: {exc}") from exc

        body = self._parse_body(response)
        error = self._error_message(body)
        if response.is_error or error is not None:
            message = error or f"Provider returned HTTP {response.status_code}"
            Log.warning(f"Provider endpoint {path} failed: {message}")
            raise ProviderTransportError(
                message,
                http_status=response.status_code,
                raw_body=response.text,
            )
        return ProviderResponse(
            http_status=response.status_code,
            body=body,
            raw=response.text,
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            parsed = response.json()
        except ValueError:
            # Some proxies answer with a bare token string, not always UTF-8.
            return {"responseData": response.text.strip()}
        if isinstance(parsed, dict):
            return parsed
        if isinstance(parsed, str):
            return {"responseData": parsed}
        return {"data": parsed}

    @staticmethod
    def _error_message(body: dict[str, Any]) -> str | None:
        error = body.get("error")
        if not error:
            return None
        if isinstance(error, str):
            return error
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        return json.dumps(error)
