from adsentry.checks.base_check import BaseCheck, get_field, micros_to_amount
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity
from adsentry.utils.formatting import format_currency

BUDGET_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      campaign_budget.amount_micros,
      metrics.cost_micros
    FROM campaign
    WHERE campaign.status = 'ENABLED'
      AND segments.date DURING TODAY
"""

# spend at or above this share of the daily budget counts as depleted
DEPLETED_RATIO = 0.95
MAX_LISTED_CAMPAIGNS = 10


class BudgetDepletedCheck(BaseCheck):
    id = "budget_depleted"
    name = "Budget depleted"
    description = "Detects campaigns that have spent their whole daily budget"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            rows = platform_client.query(BUDGET_QUERY)["results"]
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        campaigns = []
        for row in rows:
            budget = micros_to_amount(get_field(row, "campaignBudget.amountMicros"))
            spent = micros_to_amount(get_field(row, "metrics.costMicros"))
            if budget > 0 and spent >= budget * DEPLETED_RATIO:
                campaigns.append(
                    {
                        "campaign_id": get_field(row, "campaign.id"),
                        "campaign_name": get_field(row, "campaign.name", "Unknown"),
                        "budget": budget,
                        "spent": spent,
                    }
                )

        if not campaigns:
            return self.ok_result({"message": "No campaigns with a depleted budget"})

        count = len(campaigns)
        total_budget = sum(campaign["budget"] for campaign in campaigns)
        logger.info(
            f"Found {count} campaigns with a depleted budget",
            extra={"tenant_name": tenant_config.name},
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: budget depleted",
                short_description=(
                    f"{count} campaign{'s have' if count > 1 else ' has'} used up the daily budget"
                ),
                impact="The campaigns miss potential impressions and conversions",
                suggested_actions=[
                    "Raise the daily budget of these campaigns",
                    "Optimize bids to lower costs",
                    "Check whether this is expected behaviour",
                ],
                severity=AlertSeverity.CRITICAL if count > 2 else AlertSeverity.HIGH,
                details={
                    "campaign_count": count,
                    "total_budget": format_currency(total_budget, tenant_config.currency),
                },
            ),
            {"campaigns": campaigns[:MAX_LISTED_CAMPAIGNS]},
        )
