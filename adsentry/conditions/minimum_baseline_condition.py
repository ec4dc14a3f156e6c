from adsentry.conditions.base_condition import (
    BaseCondition,
    ConditionVerdict,
    EvaluationContext,
)
from adsentry.models.alert import AnomalyReason


class MinimumBaselineCondition(BaseCondition):
    """Suppresses percentage alerts on low-volume metrics."""

    def apply(self, context: EvaluationContext):
        min_baseline = context.thresholds.min_baseline
        if context.baseline >= min_baseline:
            return None
        return ConditionVerdict(
            severity=None,
            reason=AnomalyReason.BELOW_MINIMUM_BASELINE,
            diagnosis_hint=(
                f"Baseline ({context.baseline:.1f}) is below the minimum "
                f"({min_baseline:g}); percentage alerts are suppressed."
            ),
        )
