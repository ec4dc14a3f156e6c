from adsentry.conditions.base_condition import (
    BaseCondition,
    ConditionVerdict,
    EvaluationContext,
)
from adsentry.models.alert import AnomalyReason
from adsentry.models.severity import AlertSeverity


class ThresholdCondition(BaseCondition):
    """Classifies the absolute percentage deviation against the thresholds.

    Both boundaries are inclusive: a deviation equal to the critical
    threshold is critical.
    """

    def apply(self, context: EvaluationContext):
        deviation = abs(context.delta_pct)
        if deviation >= context.thresholds.critical:
            severity = AlertSeverity.CRITICAL
        elif deviation >= context.thresholds.warning:
            severity = AlertSeverity.WARNING
        else:
            return None
        return ConditionVerdict(severity, AnomalyReason.PERCENTAGE_DEVIATION)
