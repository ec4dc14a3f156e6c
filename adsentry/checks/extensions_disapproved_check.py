import collections

from adsentry.checks.base_check import BaseCheck, get_field, policy_topics
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity

ASSETS_QUERY = """
    SELECT
      asset.id,
      asset.name,
      asset.type,
      asset.policy_summary.approval_status,
      asset.policy_summary.review_status,
      asset.policy_summary.policy_topic_entries
    FROM asset
    WHERE asset.policy_summary.approval_status IN ('DISAPPROVED', 'AREA_OF_INTEREST_ONLY', 'UNKNOWN')
      AND asset.type IN ('SITELINK', 'CALLOUT', 'STRUCTURED_SNIPPET', 'CALL', 'PROMOTION', 'PRICE', 'IMAGE')
"""

MAX_LISTED_ASSETS = 15


class ExtensionsDisapprovedCheck(BaseCheck):
    id = "extensions_disapproved"
    name = "Disapproved extensions"
    description = "Detects disapproved ad extensions and assets"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            rows = platform_client.query(ASSETS_QUERY)["results"]
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        assets = [
            {
                "asset_id": get_field(row, "asset.id", "unknown"),
                "name": get_field(row, "asset.name", "Unnamed extension"),
                "type": get_field(row, "asset.type", "UNKNOWN"),
                "approval_status": get_field(
                    row, "asset.policySummary.approvalStatus", "UNKNOWN"
                ),
                "policy_topics": policy_topics(
                    get_field(row, "asset.policySummary.policyTopicEntries")
                ),
            }
            for row in rows
            if get_field(row, "asset.policySummary.approvalStatus") != "APPROVED"
        ]
        if not assets:
            logger.debug("No disapproved extensions found")
            return self.ok_result({"message": "All extensions and assets are approved"})

        count = len(assets)
        by_type = dict(collections.Counter(asset["type"] for asset in assets))
        topics = sorted({topic for asset in assets for topic in asset["policy_topics"]})
        has_sitelinks = by_type.get("SITELINK", 0) > 0
        logger.info(
            f"Found {count} disapproved extensions",
            extra={"tenant_name": tenant_config.name, "by_type": by_type},
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: extensions disapproved",
                short_description=f"{count} extension{'s' if count > 1 else ''} disapproved",
                impact=(
                    "Disapproved sitelinks significantly reduce ad space and CTR"
                    if has_sitelinks
                    else "Disapproved extensions reduce ad effectiveness"
                ),
                suggested_actions=[
                    "Review the disapproved extensions in Google Ads",
                    "Check which policy topics were violated",
                    "Adjust the text or URL to follow the guidelines",
                    "Resubmit the extensions for review",
                    "Replace disapproved extensions with new variants",
                ],
                severity=(
                    AlertSeverity.HIGH
                    if has_sitelinks and count > 2
                    else AlertSeverity.MEDIUM
                ),
                details={
                    "disapproved_count": count,
                    "by_type": by_type,
                    "policy_topics": topics,
                },
            ),
            {
                "extensions": assets[:MAX_LISTED_ASSETS],
                "total_count": count,
                "by_type": by_type,
                "policy_topics": topics,
            },
        )
