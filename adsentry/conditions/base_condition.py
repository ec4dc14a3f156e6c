"""
Base class for all evaluation guards.
"""
import abc
import dataclasses
import logging
from typing import Optional

from adsentry.config.schema import GlobalConfig, ThresholdConfig
from adsentry.models.alert import AnomalyReason
from adsentry.models.metric import MetricDataset
from adsentry.models.severity import AlertSeverity


@dataclasses.dataclass
class EvaluationContext:
    dataset: MetricDataset
    thresholds: ThresholdConfig
    global_config: GlobalConfig
    baseline: float
    actual: float
    delta_pct: float


@dataclasses.dataclass
class ConditionVerdict:
    severity: Optional[AlertSeverity]
    reason: AnomalyReason
    diagnosis_hint: str = ""


class BaseCondition(metaclass=abc.ABCMeta):
    def __init__(self, condition_type, condition_config=None, **kwargs):
        """
        Initialize a guard.

        Args:
            condition_type (str): the guard name, e.g. "zero_value".
            condition_config (dict): optional guard specific settings.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.condition_type = condition_type
        self.condition_config = condition_config or {}

    @abc.abstractmethod
    def apply(self, context: EvaluationContext) -> Optional[ConditionVerdict]:
        """
        Decide on the evaluation context.

        Returns:
            ConditionVerdict when the guard matched and the evaluation stops,
            None to hand over to the next guard.
        """
        raise NotImplementedError("apply() method not implemented")
