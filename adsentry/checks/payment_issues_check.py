import datetime

from adsentry.checks.base_check import BaseCheck, get_field
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity

ACCOUNT_QUERY = """
    SELECT
      customer.id,
      customer.descriptive_name,
      customer.status
    FROM customer
"""

BILLING_QUERY = """
    SELECT
      billing_setup.id,
      billing_setup.status,
      billing_setup.payments_account
    FROM billing_setup
    WHERE billing_setup.status != 'CANCELLED'
"""

BLOCKING_ACCOUNT_STATUSES = {
    "SUSPENDED": ("account_suspended", "Account is suspended, possibly over billing"),
    "CLOSED": ("account_closed", "Account is closed"),
    "CANCELLED": ("account_cancelled", "Account is cancelled"),
}

HELD_BILLING_STATUSES = {
    "PENDING": ("billing_pending", "Billing setup is awaiting approval"),
    "APPROVED_HELD": ("billing_held", "Billing setup is approved but on hold"),
}


class PaymentIssuesCheck(BaseCheck):
    """Billing and account status problems that stop ads from serving."""

    id = "payment_issues"
    name = "Payment issues"
    description = "Detects payment and billing problems that stop ads"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        issues = []
        try:
            account_rows = platform_client.query(ACCOUNT_QUERY)["results"]
            if account_rows:
                status = get_field(account_rows[0], "customer.status")
                if status in BLOCKING_ACCOUNT_STATUSES:
                    issue_type, description = BLOCKING_ACCOUNT_STATUSES[status]
                    issues.append(
                        {"type": issue_type, "description": description, "severity": "critical"}
                    )

            try:
                billing_rows = platform_client.query(BILLING_QUERY)["results"]
            except Exception as e:
                # billing setups need more permissions than the rest of the checks
                logger.debug(
                    "Could not query billing setup", extra={"error": str(e)}
                )
            else:
                if not billing_rows:
                    issues.append(
                        {
                            "type": "no_billing_setup",
                            "description": "No billing setup found",
                            "severity": "high",
                        }
                    )
                for row in billing_rows:
                    status = get_field(row, "billingSetup.status")
                    if status in HELD_BILLING_STATUSES:
                        issue_type, description = HELD_BILLING_STATUSES[status]
                        issues.append(
                            {"type": issue_type, "description": description, "severity": "high"}
                        )
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        if not issues:
            logger.debug("No payment issues found")
            return self.ok_result({"message": "No payment issues detected"})

        count = len(issues)
        has_critical = any(issue["severity"] == "critical" for issue in issues)
        logger.warning(
            f"Found {count} payment/billing issues",
            extra={
                "tenant_name": tenant_config.name,
                "issues": [issue["type"] for issue in issues],
            },
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: payment issues detected",
                short_description=(
                    "Critical payment issues, ads have stopped"
                    if has_critical
                    else f"{count} payment issue{'s' if count > 1 else ''} found"
                ),
                impact=(
                    "All ads are stopped until the payment issues are resolved"
                    if has_critical
                    else "Ads may be interrupted if this is not resolved"
                ),
                suggested_actions=[
                    "Check the payment method in Google Ads",
                    "Verify that the account balance is sufficient",
                    "Check that the credit card has not expired",
                    "Contact Google Ads support if needed",
                    "Review the billing history for declined payments",
                ],
                severity=AlertSeverity.CRITICAL if has_critical else AlertSeverity.HIGH,
                details={
                    "issue_count": count,
                    "issue_types": [issue["type"] for issue in issues],
                    "has_critical_issue": has_critical,
                },
            ),
            {
                "issues": issues,
                "check_time": datetime.datetime.now(tz=datetime.timezone.utc).isoformat(),
            },
        )
