from bgv.lookup.exceptions import ProviderError


class ProviderTransportError(ProviderError):
    """Raised by a provider client when an endpoint call fails or returns an error body."""

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        raw_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.raw_body = raw_body


class UnknownDocTypeError(ProviderError):
    """Raised when no pipeline endpoints are configured for a document type."""


class UnknownRouteError(ProviderError):
    """Raised when no lookup path is configured for a provider route."""
