from adsentry.checks.base_check import BaseCheck, get_field, policy_topics
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity

DISAPPROVED_ADS_QUERY = """
    SELECT
      ad_group_ad.ad.id,
      ad_group_ad.ad.name,
      ad_group_ad.policy_summary.approval_status,
      ad_group_ad.policy_summary.policy_topic_entries,
      ad_group.id,
      ad_group.name,
      campaign.id,
      campaign.name
    FROM ad_group_ad
    WHERE ad_group_ad.policy_summary.approval_status != 'APPROVED'
      AND ad_group_ad.policy_summary.approval_status != 'APPROVED_LIMITED'
      AND ad_group_ad.status != 'REMOVED'
      AND ad_group.status != 'REMOVED'
      AND campaign.status != 'REMOVED'
"""

MAX_LISTED_ADS = 10


class DisapprovedAdsCheck(BaseCheck):
    id = "disapproved_ads"
    name = "Disapproved ads"
    description = "Detects ads disapproved by Google for policy violations"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            rows = platform_client.query(DISAPPROVED_ADS_QUERY)["results"]
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        if not rows:
            logger.debug("No disapproved ads found")
            return self.ok_result({"message": "All ads are approved"})

        ads = [
            {
                "ad_id": get_field(row, "adGroupAd.ad.id", "unknown"),
                "ad_name": get_field(row, "adGroupAd.ad.name", "Unnamed ad"),
                "ad_group_name": get_field(row, "adGroup.name", "Unknown ad group"),
                "campaign_name": get_field(row, "campaign.name", "Unknown campaign"),
                "approval_status": get_field(
                    row, "adGroupAd.policySummary.approvalStatus", "UNKNOWN"
                ),
                "policy_topics": policy_topics(
                    get_field(row, "adGroupAd.policySummary.policyTopicEntries")
                ),
            }
            for row in rows
        ]
        count = len(ads)
        topics = sorted({topic for ad in ads for topic in ad["policy_topics"]})
        logger.info(
            f"Found {count} disapproved ads",
            extra={"tenant_name": tenant_config.name, "policy_topics": topics},
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: ads disapproved",
                short_description=f"{count} ad{'s' if count > 1 else ''} disapproved",
                impact=(
                    "Several ads are not serving, campaign effectiveness is "
                    "significantly reduced"
                    if count > 3
                    else "Ads are currently not serving"
                ),
                suggested_actions=[
                    "Review the disapproved ads in Google Ads",
                    "Check which policy topics were violated",
                    "Adjust the ad text or images",
                    "Resubmit the ads for review",
                ],
                severity=AlertSeverity.CRITICAL if count > 5 else AlertSeverity.HIGH,
                details={"disapproved_count": count, "policy_topics": topics},
            ),
            {
                "disapproved_ads": ads[:MAX_LISTED_ADS],
                "total_count": count,
                "policy_topics": topics,
            },
        )
