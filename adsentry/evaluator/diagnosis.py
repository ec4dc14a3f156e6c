"""
Canned diagnosis hints and investigation checklists.

Lookups are keyed by (metric, direction); zero-value anomalies use their own
tables keyed by metric. Unknown keys fall back to generic text.
"""
from adsentry.models.alert import Direction
from adsentry.models.metric import MetricType

BASE_CHECKLIST = [
    "Check the GA4 Realtime report for current data",
    "Compare with the same day last week",
]

ZERO_VALUE_CHECKLIST = [
    "Check that the GA4 tracking code is present on the website",
    "Inspect GA4 DebugView for incoming events",
    "Check whether active filters are blocking data",
    "Verify that the property ID is correct",
]

ZERO_VALUE_HINTS = {
    MetricType.SESSIONS: (
        "No sessions recorded. Possible causes: tracking code removed, "
        "website offline, or a filter problem."
    ),
    MetricType.CONVERSIONS: (
        "No conversions recorded. Check that the key event is still "
        "configured correctly in GA4."
    ),
    MetricType.PURCHASE_REVENUE: (
        "No revenue recorded. Check the e-commerce tracking setup and "
        "whether purchases actually happened."
    ),
}

DIAGNOSIS_HINTS = {
    (MetricType.SESSIONS, Direction.DECREASE): (
        "Significant drop in sessions. Check recent campaign changes, "
        "SEO issues or technical problems."
    ),
    (MetricType.SESSIONS, Direction.INCREASE): (
        "Unexpected rise in sessions. Verify whether this is organic growth "
        "or spam/bot traffic."
    ),
    (MetricType.TOTAL_USERS, Direction.DECREASE): (
        "Fewer unique users than expected. Campaign or organic reach may "
        "have dropped."
    ),
    (MetricType.TOTAL_USERS, Direction.INCREASE): (
        "More unique users than expected. Check the source of the extra "
        "traffic (campaign, viral content, etc.)."
    ),
    (MetricType.ENGAGEMENT_RATE, Direction.DECREASE): (
        "Engagement rate dropped. Check for recent changes to the website "
        "or its content."
    ),
    (MetricType.ENGAGEMENT_RATE, Direction.INCREASE): (
        "Engagement rate rose. A positive signal, but verify it is not "
        "caused by fewer, more engaged visitors."
    ),
    (MetricType.CONVERSIONS, Direction.DECREASE): (
        "Conversions dropped. Check the conversion path, landing pages and "
        "any technical issues."
    ),
    (MetricType.CONVERSIONS, Direction.INCREASE): (
        "Conversions rose. Verify that tracking works correctly and check "
        "which campaigns performed."
    ),
    (MetricType.PURCHASE_REVENUE, Direction.DECREASE): (
        "Revenue dropped. Analyse order value and number of transactions "
        "separately."
    ),
    (MetricType.PURCHASE_REVENUE, Direction.INCREASE): (
        "Revenue rose. Check whether higher volume or higher order value "
        "drives it."
    ),
}

_TRAFFIC_CHECKLIST = [
    "Analyse traffic sources in GA4 (Acquisition report)",
    "Check Google Search Console for SEO changes",
    "Review active campaigns in Google Ads",
    "Check the website for technical issues",
]

METRIC_CHECKLISTS = {
    MetricType.SESSIONS: _TRAFFIC_CHECKLIST,
    MetricType.TOTAL_USERS: _TRAFFIC_CHECKLIST,
    MetricType.ENGAGEMENT_RATE: [
        "Check bounce rate and session duration",
        "Analyse which pages are visited most",
        "Review recent content or design changes",
    ],
    MetricType.CONVERSIONS: [
        "Test the conversion path manually",
        "Check that the key event still fires",
        "Analyse the funnel steps in GA4",
        "Review landing page performance",
    ],
    MetricType.PURCHASE_REVENUE: [
        "Compare the number of transactions with the average order value",
        "Analyse product performance",
        "Review the checkout flow for errors",
        "Check the payment provider status",
    ],
}


def get_diagnosis_hint(metric, direction: Direction, is_zero: bool = False) -> str:
    if is_zero:
        return ZERO_VALUE_HINTS.get(
            metric,
            f"{metric} is zero while data is normally present. "
            "Check the tracking configuration.",
        )
    hint = DIAGNOSIS_HINTS.get((metric, direction))
    if hint:
        return hint
    change = {Direction.DECREASE: "drop", Direction.INCREASE: "rise"}.get(
        direction, "change"
    )
    return f"Significant {change} in {metric}. Further investigation recommended."


def get_checklist(metric, is_zero: bool = False) -> list[str]:
    if is_zero:
        return ZERO_VALUE_CHECKLIST + BASE_CHECKLIST
    return METRIC_CHECKLISTS.get(metric, []) + BASE_CHECKLIST
