"""
Base class for all platform checks.

A check queries the ad platform for one failure mode, applies its own
heuristic and returns a CheckResult. Checks never dispatch alerts.
"""
import abc
import logging
from typing import Any, Optional

from adsentry.config.schema import TenantConfig
from adsentry.models.alert import AlertData, CheckResult, CheckStatus

MICROS_PER_UNIT = 1_000_000


def get_field(row: dict, path: str, default: Any = None) -> Any:
    """Read a dotted path such as "campaign.name" from a result row."""
    value = row
    for part in path.split("."):
        if not isinstance(value, dict):
            return default
        value = value.get(part)
        if value is None:
            return default
    return value


def to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def micros_to_amount(value: Any) -> float:
    return to_int(value) / MICROS_PER_UNIT


def policy_topics(entries: Optional[list]) -> list[str]:
    return [entry["topic"] for entry in entries or [] if entry.get("topic")]


class BaseCheck(metaclass=abc.ABCMeta):
    id: str = ""
    name: str = ""
    description: str = ""

    @abc.abstractmethod
    def run(
        self, platform_client, tenant_config: TenantConfig, logger: logging.Logger
    ) -> CheckResult:
        """
        Run the check against a tenant's ad account.

        Args:
            platform_client: exposes query(gaql) -> {"results": [rows]}.
            tenant_config (TenantConfig): the tenant being checked.
            logger (logging.Logger): run logger.

        Raises:
            Platform errors are logged and re-raised.
        """
        raise NotImplementedError("run() method not implemented")

    def ok_result(self, details: Optional[dict] = None) -> CheckResult:
        return CheckResult(
            check_id=self.id, status=CheckStatus.OK, count=0, details=details or {}
        )

    def warning_result(
        self, count: int, alert_data: AlertData, details: Optional[dict] = None
    ) -> CheckResult:
        return CheckResult(
            check_id=self.id,
            status=CheckStatus.WARNING,
            count=count,
            details=details or {},
            alert_data=alert_data,
        )

    def error_result(
        self, count: int, alert_data: AlertData, details: Optional[dict] = None
    ) -> CheckResult:
        return CheckResult(
            check_id=self.id,
            status=CheckStatus.ERROR,
            count=count,
            details=details or {},
            alert_data=alert_data,
        )

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.id}>"
