from abc import ABC, abstractmethod
from typing import Any

from bgv.provider.models import PipelineEndpoints, ProviderResponse


class BaseProviderClient(ABC):
    """Contract for verification provider transports.

    Implementations return the parsed body of each endpoint and raise
    ProviderTransportError when the call itself fails or the body carries an
    ``error`` field. Token presence and status interpretation are left to the
    pipeline.
    """

    @abstractmethod
    def endpoints_for(self, doc_type: str) -> PipelineEndpoints:
        """Return the pipeline endpoints configured for a document type."""

    @abstractmethod
    def encrypt(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        """Submit the plain request and receive an opaque request token."""

    @abstractmethod
    def transmit(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        """Exchange the request token for an opaque response token."""

    @abstractmethod
    def decrypt(self, doc_type: str, payload: dict[str, Any]) -> ProviderResponse:
        """Turn the response token into the structured result."""

    @abstractmethod
    def invoke_lookup(self, payload: dict[str, Any], route: str) -> ProviderResponse:
        """Start a lookup on the named route. It may complete immediately or be deferred."""

    def close(self) -> None:
        """Release the transport. Clients without one have nothing to do."""
