"""
Registry of the platform checks, in run order: delivery blockers first,
then tracking, performance and opportunities.
"""
from typing import Optional

from adsentry.checks.base_check import BaseCheck
from adsentry.checks.budget_depleted_check import BudgetDepletedCheck
from adsentry.checks.conversion_tracking_check import ConversionTrackingCheck
from adsentry.checks.cpa_increase_check import CpaIncreaseCheck
from adsentry.checks.disapproved_ads_check import DisapprovedAdsCheck
from adsentry.checks.extensions_disapproved_check import ExtensionsDisapprovedCheck
from adsentry.checks.no_delivery_check import NoDeliveryCheck
from adsentry.checks.paused_high_performers_check import PausedHighPerformersCheck
from adsentry.checks.payment_issues_check import PaymentIssuesCheck
from adsentry.checks.roas_decrease_check import RoasDecreaseCheck
from adsentry.checks.spend_without_value_check import SpendWithoutValueCheck

CHECKS: list[BaseCheck] = [
    PaymentIssuesCheck(),
    DisapprovedAdsCheck(),
    NoDeliveryCheck(),
    BudgetDepletedCheck(),
    ExtensionsDisapprovedCheck(),
    ConversionTrackingCheck(),
    CpaIncreaseCheck(),
    RoasDecreaseCheck(),
    SpendWithoutValueCheck(),
    PausedHighPerformersCheck(),
]


def get_check(check_id: str) -> Optional[BaseCheck]:
    return next((check for check in CHECKS if check.id == check_id), None)


def get_all_check_ids() -> list[str]:
    return [check.id for check in CHECKS]


def get_checks(check_ids: Optional[list[str]] = None) -> list[BaseCheck]:
    """Checks in registry order, limited to check_ids when given. Unknown ids are ignored."""
    if check_ids is None:
        return list(CHECKS)
    wanted = set(check_ids)
    return [check for check in CHECKS if check.id in wanted]
