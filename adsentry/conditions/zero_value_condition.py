from adsentry.conditions.base_condition import (
    BaseCondition,
    ConditionVerdict,
    EvaluationContext,
)
from adsentry.models.alert import AnomalyReason
from adsentry.models.metric import MetricType
from adsentry.models.severity import AlertSeverity

ZERO_VALUE_METRICS = frozenset(
    {MetricType.SESSIONS, MetricType.CONVERSIONS, MetricType.PURCHASE_REVENUE}
)


class ZeroValueCondition(BaseCondition):
    """A metric that dropped to exactly zero while its baseline is positive.

    Escalates straight to critical, regardless of how much history exists.
    """

    def apply(self, context: EvaluationContext):
        metrics = self.condition_config.get("metrics", ZERO_VALUE_METRICS)
        if context.dataset.metric not in metrics:
            return None
        if context.actual == 0 and context.baseline > 0:
            return ConditionVerdict(AlertSeverity.CRITICAL, AnomalyReason.ZERO_VALUE)
        return None
