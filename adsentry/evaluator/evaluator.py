import logging

from adsentry.conditions.base_condition import BaseCondition, EvaluationContext
from adsentry.conditions.condition_factory import ConditionFactory
from adsentry.config.schema import GlobalConfig, ThresholdConfig
from adsentry.evaluator.diagnosis import get_checklist, get_diagnosis_hint
from adsentry.models.alert import AnomalyReason, AnomalyResult, Direction
from adsentry.models.metric import MetricDataset

logger = logging.getLogger(__name__)

# First match wins.
GUARD_ORDER = ("zero_value", "insufficient_data", "minimum_baseline", "threshold")


def get_guards(guard_order=GUARD_ORDER) -> list[BaseCondition]:
    return [ConditionFactory.get_condition(guard) for guard in guard_order]


DEFAULT_GUARDS = get_guards()


def calculate_baseline(values: list[float]) -> float:
    if not values:
        return 0
    return sum(values) / len(values)


def calculate_delta_pct(actual: float, baseline: float) -> float:
    if baseline == 0:
        # a jump from nothing counts as +100%
        return 0 if actual == 0 else 100
    return (actual - baseline) / baseline * 100


def get_direction(delta_pct: float) -> Direction:
    if delta_pct > 0:
        return Direction.INCREASE
    if delta_pct < 0:
        return Direction.DECREASE
    return Direction.NONE


def evaluate_metric(
    dataset: MetricDataset,
    thresholds: ThresholdConfig,
    global_config: GlobalConfig,
    tenant_name: str = "",
    guards: list[BaseCondition] | None = None,
) -> AnomalyResult:
    """
    Classify yesterday's value of a metric against its baseline.

    Args:
        dataset (MetricDataset): yesterday's value and the baseline window.
        thresholds (ThresholdConfig): effective thresholds for this metric.
        global_config (GlobalConfig): supplies the minimum history length.
        tenant_name (str): copied onto the result for reporting.
        guards (list[BaseCondition]): overrides DEFAULT_GUARDS.

    Returns:
        AnomalyResult: severity is None unless a guard raised an anomaly.
    """
    baseline = calculate_baseline(dataset.baseline_values)
    actual = dataset.yesterday.value
    delta_pct = calculate_delta_pct(actual, baseline)
    direction = get_direction(delta_pct)

    result = AnomalyResult(
        tenant_id=dataset.tenant_id,
        tenant_name=tenant_name,
        metric=dataset.metric,
        date=dataset.yesterday.date,
        baseline=baseline,
        actual=actual,
        delta_pct=delta_pct,
        direction=direction,
        reason=AnomalyReason.NO_ANOMALY,
    )

    context = EvaluationContext(
        dataset=dataset,
        thresholds=thresholds,
        global_config=global_config,
        baseline=baseline,
        actual=actual,
        delta_pct=delta_pct,
    )
    for guard in DEFAULT_GUARDS if guards is None else guards:
        verdict = guard.apply(context)
        if verdict is None:
            continue
        logger.debug(
            "Guard decided metric evaluation",
            extra={
                "tenant_id": dataset.tenant_id,
                "metric": str(dataset.metric),
                "guard": guard.condition_type,
                "reason": str(verdict.reason),
            },
        )
        result.severity = verdict.severity
        result.reason = verdict.reason
        if verdict.severity is None:
            result.diagnosis_hint = verdict.diagnosis_hint
        else:
            is_zero = verdict.reason == AnomalyReason.ZERO_VALUE
            result.diagnosis_hint = verdict.diagnosis_hint or get_diagnosis_hint(
                dataset.metric, direction, is_zero
            )
            result.checklist_items = get_checklist(dataset.metric, is_zero)
        break

    return result
