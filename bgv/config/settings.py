from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bgv.provider.models import TRUTHSCREEN, VERIFICATION_PROVIDERS


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "bgv"
    db_username: str = "bgv"
    db_password: str = "secret"

    provider_base_url: str = "http://localhost:4001"
    provider_api_key: str = ""
    provider_timeout_seconds: int = 30

    pan_doc_type: str = "PAN"
    pan_encrypt_path: str = "/api/encrypt-pan-verification"
    pan_transmit_path: str = "/api/get-pan-verification-data"
    pan_decrypt_path: str = "/api/decrypt-pan-verification"

    dual_employment_doc_type: str = "464"
    dual_encrypt_path: str = "/api/dual-encrypt-proxy?endpoint=dual-encrypt"
    dual_transmit_path: str = "/api/dual-encrypt-proxy?endpoint=dual-verify"
    dual_decrypt_path: str = "/api/dual-encrypt-proxy?endpoint=dual-decrypt"

    provider_lookup_path: str = "/functions/v1/run-bgv-check"
    gridlines_lookup_path: str = "/functions/v1/run-gridlines-check"
    full_history_lookup_path: str = "/functions/v1/uan-full-history"
    full_history_doc_type: str = "337"

    # Organizations missing from the map use the default provider.
    default_verification_provider: str = TRUTHSCREEN
    organization_providers: dict[str, str] = {}

    api_call_logging_enabled: bool = True

    max_poll_attempts: int = 10
    poll_interval_seconds: int = 30

    update_channel: str = "lookup_records_changed"
    update_listen_timeout_seconds: float = 5.0

    @field_validator("default_verification_provider")
    @classmethod
    def validate_default_provider(cls, v: str) -> str:
        return _provider_name(v)

    @field_validator("organization_providers")
    @classmethod
    def validate_organization_providers(cls, v: dict[str, str]) -> dict[str, str]:
        return {org: _provider_name(name) for org, name in v.items()}

    def provider_for(self, organization_id: str | None) -> str:
        """Verification provider configured for an organization."""
        return self.organization_providers.get(
            organization_id or "", self.default_verification_provider
        )


def _provider_name(value: str) -> str:
    name = value.strip().lower()
    if name not in VERIFICATION_PROVIDERS:
        raise ValueError(f"Verification provider must be one of {', '.join(VERIFICATION_PROVIDERS)}")
    return name
