"""
Base class for all providers.
"""

import abc
import logging
import os
import re
from typing import Literal, Optional

import requests

from adsentry.exceptions.provider_exception import ProviderHttpException
from adsentry.providers.models.provider_config import ProviderConfig
from adsentry.resilience.retry_policy import RetryPolicy


class BaseProvider(metaclass=abc.ABCMeta):
    PROVIDER_DISPLAY_NAME: str = ""
    PROVIDER_CATEGORY: list[
        Literal["Analytics", "Advertising", "Ticketing", "Others"]
    ] = ["Others"]
    REQUEST_TIMEOUT = 30

    def __init__(
        self,
        provider_id: str,
        config: ProviderConfig,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize a provider.

        Args:
            provider_id (str): The provider id, also the logger name.
            config (ProviderConfig): Authentication settings.
            retry_policy (RetryPolicy): Shared retry policy for HTTP calls.
        """
        self.provider_id = provider_id
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()

        self.logger = logging.getLogger(self.provider_id)
        log_level = os.environ.get(
            "ADSENTRY_{}_PROVIDER_LOG_LEVEL".format(self.provider_id.upper())
        )
        if log_level:
            self.logger.setLevel(log_level)

        self.validate_config()
        self.logger.debug(
            "Base provider initialized", extra={"provider": self.__class__.__name__}
        )
        self.provider_type = self._extract_type()

    def _extract_type(self):
        """
        Extract the provider type from the provider class name.

        Returns:
            str: The provider type.
        """
        name = self.__class__.__name__
        name_without_provider = name.replace("Provider", "")
        name_with_spaces = (
            re.sub("([A-Z])", r" \1", name_without_provider).lower().strip()
        )
        return name_with_spaces.replace(" ", ".")

    @abc.abstractmethod
    def dispose(self):
        """
        Dispose of the provider.
        """
        raise NotImplementedError("dispose() method not implemented")

    @abc.abstractmethod
    def validate_config(self):
        """
        Validate provider configuration.
        """
        raise NotImplementedError("validate_config() method not implemented")

    def _request(self, method: str, url: str, session=None, **kwargs):
        """
        Send an HTTP request through the retry policy.

        Args:
            session: a requests compatible session, plain requests by default.

        Raises:
            ProviderHttpException: non-2xx response after all retries.
            requests.RequestException: network failure after all retries.
        """
        kwargs.setdefault("timeout", self.REQUEST_TIMEOUT)
        http = session or requests

        def send():
            response = http.request(method, url, **kwargs)
            if not response.ok:
                raise ProviderHttpException(
                    f"{self.PROVIDER_DISPLAY_NAME} API error: "
                    f"{response.status_code} {response.reason}",
                    status_code=response.status_code,
                    body=response.text,
                )
            return response

        return self.retry_policy.call(send)

    def __str__(self):
        return f"{self.PROVIDER_DISPLAY_NAME or self.__class__.__name__}({self.provider_id})"
