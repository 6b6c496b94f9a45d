from bgv.config.settings import Settings
from bgv.database.repositories.api_call_log_repository import ApiCallLogRepository
from bgv.provider.adapter import ProviderAdapter
from bgv.provider.http_client import HttpProviderClient
from bgv.provider.models import (
    FULL_HISTORY_ROUTE,
    GRIDLINES,
    TRUTHSCREEN,
    PipelineEndpoints,
)


class ProviderAdapterFactory:
    """Creates the configured provider adapter."""

    @classmethod
    def create(cls, settings: Settings) -> ProviderAdapter:
        client = HttpProviderClient(
            base_url=settings.provider_base_url,
            pipelines=cls.pipelines(settings),
            lookup_paths=cls.lookup_paths(settings),
            timeout_seconds=settings.provider_timeout_seconds,
            api_key=settings.provider_api_key,
        )
        call_log = ApiCallLogRepository() if settings.api_call_logging_enabled else None
        return ProviderAdapter(client, call_log=call_log)

    @classmethod
    def pipelines(cls, settings: Settings) -> dict[str, PipelineEndpoints]:
        return {
            settings.pan_doc_type: PipelineEndpoints(
                encrypt=settings.pan_encrypt_path,
                transmit=settings.pan_transmit_path,
                decrypt=settings.pan_decrypt_path,
                api_prefix="pan",
            ),
            settings.dual_employment_doc_type: PipelineEndpoints(
                encrypt=settings.dual_encrypt_path,
                transmit=settings.dual_transmit_path,
                decrypt=settings.dual_decrypt_path,
                api_prefix="dual_uan",
            ),
        }

    @classmethod
    def lookup_paths(cls, settings: Settings) -> dict[str, str]:
        return {
            TRUTHSCREEN: settings.provider_lookup_path,
            GRIDLINES: settings.gridlines_lookup_path,
            FULL_HISTORY_ROUTE: settings.full_history_lookup_path,
        }
