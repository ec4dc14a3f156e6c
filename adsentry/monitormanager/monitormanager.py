import datetime
import logging
from typing import Callable, Optional

from adsentry.checks.base_check import BaseCheck
from adsentry.checks.checks_factory import get_checks
from adsentry.config.loader import get_effective_thresholds, get_enabled_metrics
from adsentry.config.schema import MonitoringConfig, TenantConfig
from adsentry.evaluator.evaluator import evaluate_metric
from adsentry.exceptions.provider_exception import ProviderException
from adsentry.fingerprintstore.fingerprintstore import (
    BaseFingerprintStore,
    generate_fingerprint_key,
)
from adsentry.models.alert import (
    AlertFingerprint,
    AnomalyResult,
    CheckResult,
    TaskCreationResult,
)
from adsentry.models.run import MonitoringRunResult, TenantEvaluationSummary
from adsentry.models.severity import AlertSeverity
from adsentry.providers.clickup_provider.clickup_provider import ClickupProvider
from adsentry.providers.providers_factory import ProvidersFactory
from adsentry.resilience.retry_policy import RetryPolicy


class MonitorManager:
    """
    Runs one monitoring pass over every enabled tenant.

    Metric anomalies and failed checks are deduplicated through the fingerprint
    store before a task is dispatched. A failing tenant or check is recorded in
    the run result and never stops the others.
    """

    def __init__(
        self,
        config: MonitoringConfig,
        fingerprint_store: BaseFingerprintStore,
        dispatcher: ClickupProvider,
        metric_provider_factory: Optional[Callable] = None,
        platform_client_factory: Optional[Callable] = None,
        dry_run: bool = False,
        check_ids: Optional[list[str]] = None,
        run_date: Optional[str] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.fingerprint_store = fingerprint_store
        self.dispatcher = dispatcher
        self.metric_provider_factory = (
            metric_provider_factory or ProvidersFactory.get_metric_provider
        )
        self.platform_client_factory = (
            platform_client_factory or ProvidersFactory.get_platform_client
        )
        self.dry_run = dry_run
        self.check_ids = check_ids
        self.run_date = (
            run_date or datetime.datetime.now(tz=datetime.timezone.utc).date().isoformat()
        )
        self.retry_policy = RetryPolicy.from_config(
            config.global_config.rate_limiting
        )
        self.failures = 0

    def run(self) -> MonitoringRunResult:
        """
        Raises:
            FingerprintStoreSaveError: the ledger could not be persisted.
        """
        result = MonitoringRunResult()
        self.failures = 0
        self.logger.info(
            "Starting monitoring run",
            extra={
                "tenants": len(self.config.tenants),
                "dry_run": self.dry_run,
                "run_date": self.run_date,
            },
        )

        if self.dry_run:
            self.logger.info("[DRY RUN] Skipping fingerprint cleanup")
        else:
            self.fingerprint_store.cleanup(
                self.config.global_config.fingerprint_retention_days
            )

        for tenant in self.config.tenants:
            if not tenant.monitoring_enabled:
                self.logger.info(f"Monitoring disabled for {tenant.name}, skipping")
                continue
            self._process_tenant(tenant, result)

        self.fingerprint_store.save()

        # failed dispatches are reported but do not fail the run
        result.success = self.failures == 0
        self.log_summary(result)
        return result

    def _process_tenant(self, tenant: TenantConfig, result: MonitoringRunResult):
        self.logger.info(f"Processing tenant: {tenant.name}", extra={"tenant_id": tenant.id})
        failed = False

        if tenant.ga4:
            try:
                summary = self._evaluate_metrics(tenant, result)
                result.summaries.append(summary)
            except Exception as e:
                failed = True
                self._tenant_failed(tenant, e, result)

        if tenant.google_ads and tenant.google_ads.monitoring_enabled:
            try:
                self._run_checks(tenant, result)
            except Exception as e:
                failed = True
                self._tenant_failed(tenant, e, result)

        if not failed:
            result.clients_processed += 1

    def _tenant_failed(self, tenant: TenantConfig, error: Exception, result: MonitoringRunResult):
        self.failures += 1
        result.errors.append(f"Tenant {tenant.name}: {error}")
        self.logger.exception(
            f"Failed to process tenant: {tenant.name}",
            extra={"tenant_id": tenant.id, "error": str(error)},
        )
        error_alert_list_id = self.config.global_config.clickup.error_alert_list_id
        if self.dry_run or not error_alert_list_id:
            return
        self.dispatcher.create_error_alert(
            error_alert_list_id,
            str(error),
            {"tenant_id": tenant.id, "tenant_name": tenant.name},
        )

    def _evaluate_metrics(
        self, tenant: TenantConfig, result: MonitoringRunResult
    ) -> TenantEvaluationSummary:
        metrics = get_enabled_metrics(tenant)
        self.logger.debug(
            f"Enabled metrics: {', '.join(str(metric) for metric in metrics)}",
            extra={"tenant_id": tenant.id},
        )
        metric_provider = self.metric_provider_factory(tenant, self.retry_policy)
        try:
            datasets = metric_provider.fetch_datasets(
                tenant, self.config.global_config, metrics
            )
        finally:
            metric_provider.dispose()

        summary = TenantEvaluationSummary(tenant_id=tenant.id, tenant_name=tenant.name)
        for dataset in datasets:
            thresholds = get_effective_thresholds(
                self.config.global_config, tenant, dataset.metric
            )
            anomaly = evaluate_metric(
                dataset, thresholds, self.config.global_config, tenant.name
            )
            summary.results.append(anomaly)
            summary.metrics_evaluated += 1
            result.metrics_evaluated += 1
            if not anomaly.is_anomaly:
                continue

            self.logger.warning(
                f"Anomaly detected: {anomaly.metric}",
                extra={
                    "tenant_id": tenant.id,
                    "severity": anomaly.severity.name,
                    "baseline": anomaly.baseline,
                    "actual": anomaly.actual,
                    "delta_pct": anomaly.delta_pct,
                },
            )
            summary.anomalies_found += 1
            result.anomalies_found += 1
            if anomaly.severity == AlertSeverity.CRITICAL:
                summary.critical_count += 1
            elif anomaly.severity == AlertSeverity.WARNING:
                summary.warning_count += 1
            self._handle_anomaly(tenant, anomaly, result)
        return summary

    def _get_tenant_checks(self, tenant: TenantConfig) -> list[BaseCheck]:
        check_ids = tenant.google_ads.checks
        if self.check_ids is not None:
            check_ids = [
                check_id
                for check_id in (check_ids if check_ids is not None else self.check_ids)
                if check_id in self.check_ids
            ]
        return get_checks(check_ids)

    def _run_checks(self, tenant: TenantConfig, result: MonitoringRunResult):
        platform_client = self.platform_client_factory(tenant, self.retry_policy)
        try:
            if not platform_client.verify_connection():
                raise ProviderException("Failed to verify Google Ads connection")

            for check in self._get_tenant_checks(tenant):
                self.logger.debug(f"Running check: {check.name}", extra={"tenant_id": tenant.id})
                try:
                    check_result = check.run(platform_client, tenant, self.logger)
                except Exception as e:
                    self.failures += 1
                    result.errors.append(f"Tenant {tenant.name} check {check.id}: {e}")
                    self.logger.exception(
                        f"Check {check.id} failed",
                        extra={"tenant_id": tenant.id, "error": str(e)},
                    )
                    continue

                result.checks_run += 1
                if check_result.is_anomaly:
                    result.anomalies_found += 1
                    self._handle_check_result(tenant, check_result, result)
        finally:
            platform_client.dispose()

    def _handle_anomaly(
        self, tenant: TenantConfig, anomaly: AnomalyResult, result: MonitoringRunResult
    ):
        self._dispatch_once(
            tenant,
            anomaly.metric,
            anomaly.date,
            anomaly.severity,
            self.dispatcher.build_task_title(anomaly),
            lambda: self.dispatcher.create_task(
                tenant.clickup.list_id,
                anomaly,
                assignee_id=tenant.clickup.assignee_id,
                tags=tenant.clickup.tags,
                source={"GA4 property": tenant.ga4.property_id},
                currency=tenant.currency,
            ),
            result,
        )

    def _handle_check_result(
        self, tenant: TenantConfig, check_result: CheckResult, result: MonitoringRunResult
    ):
        self._dispatch_once(
            tenant,
            check_result.check_id,
            self.run_date,
            check_result.alert_data.severity,
            self.dispatcher.build_check_task_title(tenant.name, check_result, self.run_date),
            lambda: self.dispatcher.create_check_task(
                tenant.clickup.list_id,
                tenant.name,
                check_result,
                self.run_date,
                assignee_id=tenant.clickup.assignee_id,
                tags=tenant.clickup.tags,
            ),
            result,
        )

    def _dispatch_once(
        self,
        tenant: TenantConfig,
        metric_or_check_id: str,
        date: str,
        severity: AlertSeverity,
        task_title: str,
        dispatch: Callable,
        result: MonitoringRunResult,
    ):
        """Dispatch an alert unless its fingerprint is already in the ledger."""
        key = generate_fingerprint_key(tenant.id, metric_or_check_id, date, severity)
        if self.fingerprint_store.exists(key):
            self.logger.debug(f"Skipping duplicate alert: {key}")
            result.alerts_skipped += 1
            return

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would create task: {task_title}")
            result.alerts_skipped += 1
            return

        fingerprint = AlertFingerprint(
            tenant_id=tenant.id,
            metric_or_check_id=str(metric_or_check_id),
            date=date,
            severity=severity,
        )
        if not self.fingerprint_store.try_reserve(key, fingerprint):
            self.logger.debug(f"Alert reserved by another run: {key}")
            result.alerts_skipped += 1
            return

        try:
            task = dispatch()
        except Exception as e:
            # the reservation must not outlive a dispatch that never completed
            self.logger.exception(
                f"Dispatch raised for {key}", extra={"tenant_id": tenant.id}
            )
            task = TaskCreationResult(success=False, error=str(e))

        if task.success:
            fingerprint.task_id = task.task_id
            fingerprint.task_url = task.task_url
            self.fingerprint_store.set(key, fingerprint)
            result.alerts_created += 1
            return

        self.fingerprint_store.release(key)
        result.alerts_failed += 1
        result.errors.append(
            f"Failed to create task for {tenant.name} {metric_or_check_id}: {task.error}"
        )

    def log_summary(self, result: MonitoringRunResult):
        self.logger.info(
            "Monitoring run complete",
            extra={
                "success": result.success,
                "clients_processed": result.clients_processed,
                "checks_run": result.checks_run,
                "metrics_evaluated": result.metrics_evaluated,
                "anomalies_found": result.anomalies_found,
                "alerts_created": result.alerts_created,
                "alerts_skipped": result.alerts_skipped,
                "alerts_failed": result.alerts_failed,
                "errors": len(result.errors),
            },
        )
        for error in result.errors:
            self.logger.warning(f"Run error: {error}")
        for summary in result.summaries:
            status = "⚠️" if summary.anomalies_found > 0 else "✅"
            self.logger.info(
                f"{status} {summary.tenant_name}: {summary.metrics_evaluated} metrics, "
                f"{summary.critical_count} critical, {summary.warning_count} warnings"
            )
