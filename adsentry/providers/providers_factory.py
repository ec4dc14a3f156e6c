"""
The providers factory module.
"""
import importlib
import logging
from typing import Optional

import pydantic

from adsentry.config.schema import TenantConfig
from adsentry.exceptions.provider_config_exception import ProviderConfigException
from adsentry.providers.base.base_provider import BaseProvider
from adsentry.providers.models.provider_config import ProviderConfig
from adsentry.resilience.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class ProvidersFactory:
    @staticmethod
    def get_provider_class(provider_type: str) -> type[BaseProvider]:
        module = importlib.import_module(
            f"adsentry.providers.{provider_type}_provider.{provider_type}_provider"
        )
        return getattr(module, provider_type.title().replace("_", "") + "Provider")

    @staticmethod
    def get_provider(
        provider_id: str,
        provider_type: str,
        provider_config: dict,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> BaseProvider:
        """
        Get the instantiated provider class according to the provider type.

        Args:
            provider_id (str): The provider id.
            provider_type (str): e.g. "clickup", "google_ads", "ga4".
            provider_config (dict): ProviderConfig keyword arguments.

        Raises:
            ProviderConfigException: the authentication config is incomplete.
        """
        provider_class = ProvidersFactory.get_provider_class(provider_type)
        config = ProviderConfig(**provider_config)
        try:
            return provider_class(
                provider_id=provider_id, config=config, retry_policy=retry_policy
            )
        except (TypeError, pydantic.ValidationError) as exc:
            logger.error(
                f"Configuration problem while trying to initialize the provider {provider_id}"
            )
            raise ProviderConfigException(str(exc), provider_id=provider_id)

    # Triple mustaches keep JSON credentials from being HTML escaped.
    @staticmethod
    def get_dispatcher(retry_policy: Optional[RetryPolicy] = None) -> BaseProvider:
        return ProvidersFactory.get_provider(
            "clickup",
            "clickup",
            {"authentication": {"api_token": "{{{ env.CLICKUP_TOKEN }}}"}},
            retry_policy,
        )

    @staticmethod
    def get_metric_provider(
        tenant: TenantConfig, retry_policy: Optional[RetryPolicy] = None
    ) -> BaseProvider:
        return ProvidersFactory.get_provider(
            f"ga4_{tenant.id}",
            "ga4",
            {"authentication": {"service_account_json": "{{{ env.GA4_CREDENTIALS }}}"}},
            retry_policy,
        )

    @staticmethod
    def get_platform_client(
        tenant: TenantConfig, retry_policy: Optional[RetryPolicy] = None
    ) -> BaseProvider:
        google_ads = tenant.google_ads
        return ProvidersFactory.get_provider(
            f"google_ads_{tenant.id}",
            "google_ads",
            {
                "authentication": {
                    "developer_token": "{{{ env.GOOGLE_ADS_DEVELOPER_TOKEN }}}",
                    "customer_id": google_ads.customer_id,
                    "client_id": "{{{ env.GOOGLE_ADS_CLIENT_ID }}}",
                    "client_secret": "{{{ env.GOOGLE_ADS_CLIENT_SECRET }}}",
                    # a tenant token may itself be an env template
                    "refresh_token": google_ads.refresh_token
                    or "{{{ env.GOOGLE_ADS_REFRESH_TOKEN }}}",
                    "login_customer_id": "{{{ env.GOOGLE_ADS_LOGIN_CUSTOMER_ID }}}",
                    "service_account_json": "{{{ env.GOOGLE_ADS_SERVICE_ACCOUNT }}}",
                }
            },
            retry_policy,
        )
