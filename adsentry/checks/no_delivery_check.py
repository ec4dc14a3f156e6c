import datetime

from adsentry.checks.base_check import BaseCheck, get_field, micros_to_amount, to_int
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity

NO_DELIVERY_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      campaign.start_date,
      metrics.impressions,
      metrics.clicks,
      metrics.cost_micros
    FROM campaign
    WHERE campaign.status = 'ENABLED'
      AND segments.date DURING YESTERDAY
"""

MAX_LISTED_CAMPAIGNS = 10
DEFAULT_NO_DELIVERY_HOURS = 24


def hours_since(start_date: str, now: datetime.datetime) -> float | None:
    """Hours between midnight UTC of a YYYY-MM-DD start date and now."""
    try:
        start = datetime.datetime.strptime(start_date, "%Y-%m-%d")
    except (TypeError, ValueError):
        return None
    start = start.replace(tzinfo=datetime.timezone.utc)
    return (now - start).total_seconds() / 3600


class NoDeliveryCheck(BaseCheck):
    """
    Enabled campaigns that served no impressions yesterday.

    Campaigns younger than the tenant's ``no_delivery_hours`` are still
    ramping up and are left out. A campaign without a start date counts.
    """

    id = "no_delivery"
    name = "Campaigns without delivery"
    description = "Detects enabled campaigns that generate no impressions"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        google_ads = tenant_config.google_ads
        threshold_hours = (
            google_ads.no_delivery_hours if google_ads else DEFAULT_NO_DELIVERY_HOURS
        )
        try:
            rows = platform_client.query(NO_DELIVERY_QUERY)["results"]
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        if not rows:
            logger.debug("No enabled campaigns found")
            return self.ok_result({"message": "No enabled campaigns found"})

        now = datetime.datetime.now(tz=datetime.timezone.utc)
        campaigns = []
        for row in rows:
            impressions = to_int(get_field(row, "metrics.impressions"))
            if impressions > 0:
                continue
            start_date = get_field(row, "campaign.startDate", "")
            hours_old = hours_since(start_date, now)
            if hours_old is not None and hours_old < threshold_hours:
                continue
            campaigns.append(
                {
                    "campaign_id": get_field(row, "campaign.id", "unknown"),
                    "name": get_field(row, "campaign.name", "Unknown campaign"),
                    "status": get_field(row, "campaign.status", "UNKNOWN"),
                    "start_date": start_date,
                    "impressions": impressions,
                    "cost": micros_to_amount(get_field(row, "metrics.costMicros")),
                    "hours_old": round(hours_old) if hours_old is not None else None,
                }
            )

        if not campaigns:
            logger.debug("All enabled campaigns have delivery")
            return self.ok_result(
                {
                    "message": "All enabled campaigns have impressions",
                    "total_campaigns": len(rows),
                }
            )

        count = len(campaigns)
        names = [campaign["name"] for campaign in campaigns]
        logger.info(
            f"Found {count} campaigns without delivery",
            extra={"tenant_name": tenant_config.name, "campaigns": names},
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: campaigns without impressions",
                short_description=(
                    f"{count} campaign{'s' if count > 1 else ''} enabled but not delivering"
                ),
                impact="Budget is not being spent and the campaigns reach no audience",
                suggested_actions=[
                    "Review the campaign settings",
                    "Check whether the budget is sufficient",
                    "Check whether the bids are competitive enough",
                    "Check targeting and ad group status",
                    "Verify there are no ad scheduling restrictions",
                ],
                severity=AlertSeverity.CRITICAL if count > 3 else AlertSeverity.HIGH,
                details={"no_delivery_campaigns": count, "campaign_names": names},
            ),
            {
                "campaigns": campaigns[:MAX_LISTED_CAMPAIGNS],
                "total_no_delivery": count,
                "threshold_hours": threshold_hours,
            },
        )
