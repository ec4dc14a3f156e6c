"""
GoogleAdsProvider runs read-only GAQL queries against a Google Ads account.
"""

import dataclasses
import json
from typing import Optional

import google.auth.exceptions
import google.oauth2.credentials
import google.oauth2.service_account
import pydantic
import requests
from google.auth.transport.requests import AuthorizedSession

from adsentry.exceptions.provider_config_exception import ProviderConfigException
from adsentry.exceptions.provider_exception import ProviderException
from adsentry.providers.base.base_provider import BaseProvider
from adsentry.providers.models.provider_config import ProviderConfig
from adsentry.resilience.retry_policy import RetryPolicy


@pydantic.dataclasses.dataclass
class GoogleAdsProviderAuthConfig:
    developer_token: str = dataclasses.field(
        metadata={
            "required": True,
            "description": "Google Ads developer token",
            "sensitive": True,
        }
    )
    customer_id: str = dataclasses.field(
        metadata={
            "required": True,
            "description": "Google Ads customer id (dashes are ignored)",
        }
    )
    client_id: Optional[str] = dataclasses.field(
        default=None,
        metadata={"required": False, "description": "OAuth client id"},
    )
    client_secret: Optional[str] = dataclasses.field(
        default=None,
        metadata={
            "required": False,
            "description": "OAuth client secret",
            "sensitive": True,
        },
    )
    refresh_token: Optional[str] = dataclasses.field(
        default=None,
        metadata={
            "required": False,
            "description": "OAuth refresh token of a user with access to the account",
            "sensitive": True,
        },
    )
    login_customer_id: Optional[str] = dataclasses.field(
        default=None,
        metadata={
            "required": False,
            "description": "Manager account id used to access the customer",
        },
    )
    service_account_json: Optional[str] = dataclasses.field(
        default=None,
        metadata={
            "required": False,
            "description": "Service account JSON, used instead of OAuth",
            "sensitive": True,
            "type": "file",
            "file_type": "application/json",
        },
    )


def normalize_customer_id(customer_id: Optional[str]) -> Optional[str]:
    if not customer_id:
        return customer_id
    return customer_id.strip().replace("-", "").replace(" ", "")


def parse_search_stream(text: str) -> list[dict]:
    """
    Flatten a searchStream body into its result rows.

    The body is either a JSON array of batches, a single batch object or
    newline delimited JSON batches. Unparsable NDJSON lines are skipped.
    """
    results = []
    try:
        data = json.loads(text)
    except ValueError:
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                batch = json.loads(line)
            except ValueError:
                continue
            if isinstance(batch, dict):
                results.extend(batch.get("results", []))
        return results

    if isinstance(data, list):
        for batch in data:
            results.extend(batch.get("results", []))
    elif isinstance(data, dict):
        results.extend(data.get("results", []))
    return results


class GoogleAdsProvider(BaseProvider):
    """Query Google Ads accounts for the platform checks."""

    PROVIDER_DISPLAY_NAME = "Google Ads"
    PROVIDER_CATEGORY = ["Advertising"]
    GOOGLE_ADS_API_VERSION = "v22"
    GOOGLE_ADS_API_BASE = f"https://googleads.googleapis.com/{GOOGLE_ADS_API_VERSION}"
    OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_ADS_SCOPE = "https://www.googleapis.com/auth/adwords"

    def __init__(
        self,
        provider_id: str,
        config: ProviderConfig,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(provider_id, config, retry_policy)
        self._session = None

    def validate_config(self):
        self.authentication_config = GoogleAdsProviderAuthConfig(
            **self.config.authentication
        )
        self.authentication_config.customer_id = normalize_customer_id(
            self.authentication_config.customer_id
        )
        self.authentication_config.login_customer_id = normalize_customer_id(
            self.authentication_config.login_customer_id
        )
        has_oauth = all(
            [
                self.authentication_config.client_id,
                self.authentication_config.client_secret,
                self.authentication_config.refresh_token,
            ]
        )
        if not has_oauth and not self.authentication_config.service_account_json:
            raise ProviderConfigException(
                "Either client_id, client_secret and refresh_token or "
                "service_account_json must be configured",
                provider_id=self.provider_id,
            )

    def dispose(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def __generate_credentials(self):
        if self.authentication_config.service_account_json:
            try:
                service_account_info = json.loads(
                    self.authentication_config.service_account_json
                )
            except ValueError as e:
                raise ProviderConfigException(
                    f"Invalid service account JSON: {e}", provider_id=self.provider_id
                )
            return google.oauth2.service_account.Credentials.from_service_account_info(
                service_account_info, scopes=[self.GOOGLE_ADS_SCOPE]
            )
        return google.oauth2.credentials.Credentials(
            token=None,
            refresh_token=self.authentication_config.refresh_token,
            token_uri=self.OAUTH_TOKEN_URL,
            client_id=self.authentication_config.client_id,
            client_secret=self.authentication_config.client_secret,
            scopes=[self.GOOGLE_ADS_SCOPE],
        )

    @property
    def session(self) -> AuthorizedSession:
        # refreshes the access token on demand
        if self._session is None:
            self._session = AuthorizedSession(self.__generate_credentials())
        return self._session

    @property
    def __headers(self):
        headers = {
            "Content-Type": "application/json",
            "developer-token": self.authentication_config.developer_token,
        }
        if self.authentication_config.login_customer_id:
            headers["login-customer-id"] = self.authentication_config.login_customer_id
        return headers

    def query(self, gaql: str) -> dict:
        """
        Execute a GAQL query.

        Returns:
            dict: {"results": [rows], "request_id": str}
        """
        url = (
            f"{self.GOOGLE_ADS_API_BASE}/customers/"
            f"{self.authentication_config.customer_id}/googleAds:searchStream"
        )
        response = self._request(
            "POST",
            url,
            session=self.session,
            json={"query": gaql},
            headers=self.__headers,
        )
        results = parse_search_stream(response.text)
        self.logger.debug(
            "Parsed Google Ads results",
            extra={
                "result_count": len(results),
                "customer_id": self.authentication_config.customer_id,
            },
        )
        return {
            "results": results,
            "request_id": response.headers.get("x-goog-request-id", ""),
        }

    def verify_connection(self) -> bool:
        try:
            self.query("SELECT customer.id, customer.descriptive_name FROM customer LIMIT 1")
        except (
            ProviderException,
            requests.RequestException,
            google.auth.exceptions.GoogleAuthError,
        ) as e:
            self.logger.error(
                "Failed to verify Google Ads connection", extra={"error": str(e)}
            )
            return False
        return True

    def get_customer_info(self) -> Optional[dict]:
        response = self.query(
            """
            SELECT
              customer.id,
              customer.descriptive_name,
              customer.currency_code,
              customer.time_zone
            FROM customer
            LIMIT 1
            """
        )
        if not response["results"]:
            return None
        customer = response["results"][0].get("customer", {})
        return {
            "customer_id": customer.get("id"),
            "descriptive_name": customer.get("descriptiveName"),
            "currency_code": customer.get("currencyCode"),
            "time_zone": customer.get("timeZone"),
        }


if __name__ == "__main__":
    # Output debug messages
    import logging
    import os

    logging.basicConfig(level=logging.DEBUG, handlers=[logging.StreamHandler()])

    config = ProviderConfig(
        authentication={
            "developer_token": os.environ.get("GOOGLE_ADS_DEVELOPER_TOKEN"),
            "customer_id": os.environ.get("GOOGLE_ADS_CUSTOMER_ID"),
            "client_id": os.environ.get("GOOGLE_ADS_CLIENT_ID"),
            "client_secret": os.environ.get("GOOGLE_ADS_CLIENT_SECRET"),
            "refresh_token": os.environ.get("GOOGLE_ADS_REFRESH_TOKEN"),
            "login_customer_id": os.environ.get("GOOGLE_ADS_LOGIN_CUSTOMER_ID"),
        }
    )
    provider = GoogleAdsProvider(provider_id="google_ads", config=config)
    print(provider.get_customer_info())
