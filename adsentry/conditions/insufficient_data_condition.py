from adsentry.conditions.base_condition import (
    BaseCondition,
    ConditionVerdict,
    EvaluationContext,
)
from adsentry.models.alert import AnomalyReason


class InsufficientDataCondition(BaseCondition):
    """Suppresses percentage alerts until enough days of history exist."""

    def apply(self, context: EvaluationContext):
        days_available = context.dataset.days_available
        days_needed = context.global_config.min_days_for_percentage_alerts
        if days_available >= days_needed:
            return None
        return ConditionVerdict(
            severity=None,
            reason=AnomalyReason.INSUFFICIENT_DATA,
            diagnosis_hint=(
                f"Insufficient data: {days_available} day(s) available, "
                f"at least {days_needed} needed for percentage alerts."
            ),
        )
