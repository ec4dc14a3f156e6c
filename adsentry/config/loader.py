import logging
import os

import pydantic
import yaml

from adsentry.config.schema import (
    GlobalConfig,
    MonitoringConfig,
    TenantConfig,
    ThresholdConfig,
)
from adsentry.exceptions.config_exception import ConfigError
from adsentry.models.metric import MetricType

logger = logging.getLogger(__name__)


def load_config(config_path: str) -> MonitoringConfig:
    """
    Load and validate the monitoring configuration.

    Args:
        config_path (str): path to a YAML or JSON file (JSON is valid YAML).

    Raises:
        ConfigError: the file is missing, unparsable or fails validation.
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {config_path}", details=str(e))

    return parse_config(raw_config)


def parse_config(raw_config: dict | None) -> MonitoringConfig:
    if not isinstance(raw_config, dict):
        raise ConfigError("Config must be a mapping with 'global' and 'tenants'")
    try:
        monitoring_config = MonitoringConfig.model_validate(raw_config)
    except pydantic.ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError("Invalid monitoring config", details=details)

    logger.debug(
        "Loaded monitoring config",
        extra={"tenants": len(monitoring_config.tenants)},
    )
    return monitoring_config


def get_effective_thresholds(
    global_config: GlobalConfig, tenant_config: TenantConfig, metric: MetricType
) -> ThresholdConfig:
    """Tenant override for the metric merged over the global defaults."""
    override = tenant_config.thresholds.get(metric)
    if not override:
        return global_config.default_thresholds.model_copy()
    return global_config.default_thresholds.model_copy(
        update=override.model_dump(exclude_none=True)
    )


def get_enabled_metrics(tenant_config: TenantConfig) -> list[MetricType]:
    if not tenant_config.ga4:
        return []
    enabled = set(tenant_config.ga4.metrics)
    return [metric for metric in MetricType if metric in enabled]
