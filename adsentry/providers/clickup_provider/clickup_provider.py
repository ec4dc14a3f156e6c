"""
ClickupProvider is a class that turns anomalies and check results into ClickUp tasks.
"""

import dataclasses
import datetime
import json
from typing import Optional

import pydantic
import requests

from adsentry.exceptions.provider_exception import ProviderException
from adsentry.models.alert import AnomalyResult, CheckResult, TaskCreationResult
from adsentry.models.severity import AlertSeverity
from adsentry.providers.base.base_provider import BaseProvider
from adsentry.providers.models.provider_config import ProviderConfig
from adsentry.resilience.retry_policy import RetryPolicy
from adsentry.utils.formatting import format_delta_pct, format_metric_value


@pydantic.dataclasses.dataclass
class ClickupProviderAuthConfig:
    """ClickUp authentication configuration."""

    api_token: str = dataclasses.field(
        metadata={
            "required": True,
            "description": "ClickUp API Token",
            "sensitive": True,
        }
    )


class ClickupProvider(BaseProvider):
    """Create ClickUp tasks for anomalies and failed checks."""

    PROVIDER_DISPLAY_NAME = "ClickUp"
    PROVIDER_CATEGORY = ["Ticketing"]
    CLICKUP_API_BASE = "https://api.clickup.com/api/v2"
    DEFAULT_TAG = "adsentry"
    ERROR_ALERT_TAGS = ["monitoring-error", "automated"]
    PRIORITY_BY_SEVERITY = {
        AlertSeverity.CRITICAL: 1,
        AlertSeverity.HIGH: 2,
        AlertSeverity.WARNING: 2,
        AlertSeverity.MEDIUM: 3,
        AlertSeverity.LOW: 4,
    }

    def __init__(
        self,
        provider_id: str,
        config: ProviderConfig,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(provider_id, config, retry_policy)

    def validate_config(self):
        self.authentication_config = ClickupProviderAuthConfig(
            **self.config.authentication
        )

    def dispose(self):
        """
        No need to dispose of anything, so just do nothing.
        """
        pass

    @property
    def __headers(self):
        # ClickUp personal tokens go in the header as is, without a scheme
        return {
            "Authorization": self.authentication_config.api_token,
            "Content-Type": "application/json",
        }

    @staticmethod
    def severity_emoji(severity: AlertSeverity) -> str:
        return "🚨" if severity == AlertSeverity.CRITICAL else "⚠️"

    def get_priority(self, severity: AlertSeverity) -> int:
        return self.PRIORITY_BY_SEVERITY.get(severity, 3)

    def build_task_title(self, alert: AnomalyResult) -> str:
        return (
            f"{self.severity_emoji(alert.severity)} [{alert.severity.name}] "
            f"{alert.tenant_name} – {alert.metric} anomaly ({alert.date})"
        )

    def build_task_description(
        self, alert: AnomalyResult, source: Optional[dict] = None, currency="EUR"
    ) -> str:
        if alert.delta_pct > 0:
            arrow = "📈"
        elif alert.delta_pct < 0:
            arrow = "📉"
        else:
            arrow = "➡️"
        checklist = "\n".join(f"- [ ] {item}" for item in alert.checklist_items)
        source_lines = "\n".join(
            f"- **{key}:** {value}" for key, value in (source or {}).items()
        )
        return f"""## Summary
| | |
|---|---|
| **Client** | {alert.tenant_name} |
| **Date** | {alert.date} |
| **Metric** | {alert.metric} |
| **Severity** | {alert.severity.name} |

---

## Measurements
| | |
|---|---|
| **Baseline (rolling average)** | {format_metric_value(alert.metric, alert.baseline, currency)} |
| **Actual (yesterday)** | {format_metric_value(alert.metric, alert.actual, currency)} |
| **Difference** | {arrow} {format_delta_pct(alert.delta_pct)} |

---

## Quick diagnosis
{alert.diagnosis_hint}

---

## Recommended checks
{checklist}

---

## Source
{source_lines}
- **Query type:** yesterday vs rolling average
- **Generated:** {datetime.datetime.now(tz=datetime.timezone.utc).isoformat()}
"""

    def build_check_task_title(
        self, tenant_name: str, check_result: CheckResult, date: str
    ) -> str:
        alert_data = check_result.alert_data
        return (
            f"{self.severity_emoji(alert_data.severity)} [{alert_data.severity.name}] "
            f"{tenant_name} – {alert_data.title} ({date})"
        )

    def build_check_task_description(
        self, tenant_name: str, check_result: CheckResult
    ) -> str:
        alert_data = check_result.alert_data
        actions = "\n".join(f"- [ ] {action}" for action in alert_data.suggested_actions)
        details = json.dumps(alert_data.details, indent=2, default=str)
        return f"""## {alert_data.short_description}

| | |
|---|---|
| **Client** | {tenant_name} |
| **Check** | {check_result.check_id} |
| **Severity** | {alert_data.severity.name} |
| **Affected items** | {check_result.count} |

---

## Impact
{alert_data.impact}

---

## Suggested actions
{actions}

---

## Details
```json
{details}
```
"""

    def build_tags(
        self,
        severity: AlertSeverity,
        metric_or_check_id: str,
        tags: Optional[list[str]] = None,
    ) -> list[str]:
        return [self.DEFAULT_TAG, str(severity), str(metric_or_check_id), *(tags or [])]

    def __create_task(self, list_id: str, task: dict):
        response = self._request(
            "POST",
            f"{self.CLICKUP_API_BASE}/list/{list_id}/task",
            json=task,
            headers=self.__headers,
        )
        return response.json()

    def _submit_task(self, list_id: str, task: dict) -> TaskCreationResult:
        try:
            created = self.__create_task(list_id, task)
        except (ProviderException, requests.RequestException, ValueError) as e:
            self.logger.error(
                "Failed to create ClickUp task",
                extra={"list_id": list_id, "task_name": task["name"], "error": str(e)},
            )
            return TaskCreationResult(success=False, error=str(e))

        if not isinstance(created, dict) or not created.get("id"):
            self.logger.error(
                "Unexpected ClickUp task response",
                extra={"list_id": list_id, "task_name": task["name"], "body": created},
            )
            return TaskCreationResult(
                success=False, error=f"Unexpected ClickUp response: {created!r}"
            )

        self.logger.info(
            f"Created ClickUp task: {created.get('name', task['name'])}",
            extra={"task_id": created.get("id"), "url": created.get("url")},
        )
        return TaskCreationResult(
            success=True, task_id=created.get("id"), task_url=created.get("url")
        )

    def create_task(
        self,
        list_id: str,
        alert: AnomalyResult,
        assignee_id: Optional[str] = None,
        tags: Optional[list[str]] = None,
        source: Optional[dict] = None,
        currency: str = "EUR",
    ) -> TaskCreationResult:
        """
        Create a task for a metric anomaly.

        Args:
            list_id (str): ClickUp list to create the task in.
            alert (AnomalyResult): an anomaly with a severity.
            assignee_id (str): optional ClickUp user id.
            tags (list[str]): extra tags, e.g. the tenant's.
            source (dict): lines for the source section of the description.

        Returns:
            TaskCreationResult: failures are returned, never raised.
        """
        task = {
            "name": self.build_task_title(alert),
            "description": self.build_task_description(alert, source, currency),
            "priority": self.get_priority(alert.severity),
            "tags": self.build_tags(alert.severity, alert.metric, tags),
        }
        if assignee_id:
            task["assignees"] = [assignee_id]
        return self._submit_task(list_id, task)

    def create_check_task(
        self,
        list_id: str,
        tenant_name: str,
        check_result: CheckResult,
        date: str,
        assignee_id: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> TaskCreationResult:
        severity = check_result.alert_data.severity
        task = {
            "name": self.build_check_task_title(tenant_name, check_result, date),
            "description": self.build_check_task_description(tenant_name, check_result),
            "priority": self.get_priority(severity),
            "tags": self.build_tags(severity, check_result.check_id, tags),
        }
        if assignee_id:
            task["assignees"] = [assignee_id]
        return self._submit_task(list_id, task)

    def find_task_by_name(self, list_id: str, task_name: str) -> Optional[dict]:
        try:
            response = self._request(
                "GET",
                f"{self.CLICKUP_API_BASE}/list/{list_id}/task",
                params={"page": 0},
                headers=self.__headers,
            )
        except (ProviderException, requests.RequestException) as e:
            self.logger.warning(
                "Failed to search for existing tasks", extra={"error": str(e)}
            )
            return None

        for task in response.json().get("tasks", []):
            if task.get("name") == task_name:
                return task
        return None

    def create_error_alert(
        self, list_id: str, error_message: str, context: dict
    ) -> TaskCreationResult:
        """Report a failure of the monitoring run itself."""
        date = datetime.datetime.now(tz=datetime.timezone.utc).date().isoformat()
        task = {
            "name": f"⚠️ [MONITORING ERROR] Monitoring run failed ({date})",
            "description": f"""## Monitoring error
The monitoring run failed with the following error:
```
{error_message}
```

### Context
```json
{json.dumps(context, indent=2, default=str)}
```

### Action needed
- [ ] Check that the platform API credentials are still valid
- [ ] Verify the configured property and customer IDs
- [ ] Check for rate limiting issues
- [ ] Read the run logs for more details
""",
            "priority": 2,
            "tags": list(self.ERROR_ALERT_TAGS),
        }
        return self._submit_task(list_id, task)


if __name__ == "__main__":
    # Output debug messages
    import logging
    import os

    logging.basicConfig(level=logging.DEBUG, handlers=[logging.StreamHandler()])

    clickup_api_token = os.environ.get("CLICKUP_TOKEN")
    list_id = os.environ.get("CLICKUP_LIST_ID")

    config = ProviderConfig(authentication={"api_token": clickup_api_token})
    provider = ClickupProvider(provider_id="clickup", config=config)
    print(provider.find_task_by_name(list_id, "adsentry smoke test"))
