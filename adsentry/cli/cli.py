import json
import logging
import logging.config
import os
import sys
from importlib import metadata

import click
from dotenv import find_dotenv, load_dotenv
from prettytable import PrettyTable

from adsentry.checks.checks_factory import CHECKS
from adsentry.config.loader import load_config
from adsentry.exceptions.config_exception import ConfigError
from adsentry.exceptions.fingerprint_store_exception import FingerprintStoreSaveError
from adsentry.exceptions.provider_exception import ProviderException
from adsentry.fingerprintstore.fingerprintstorefactory import FingerprintStoreFactory
from adsentry.monitormanager.monitormanager import MonitorManager
from adsentry.providers.providers_factory import ProvidersFactory
from adsentry.resilience.retry_policy import RetryPolicy

load_dotenv(find_dotenv())

try:
    ADSENTRY_VERSION = metadata.version("adsentry")
except metadata.PackageNotFoundError:
    ADSENTRY_VERSION = os.environ.get("ADSENTRY_VERSION", "unknown")

DEFAULT_CONFIG_PATH = "./config/monitoring.yaml"

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
        "json": {
            "format": "%(asctime)s %(message)s %(levelname)s %(name)s %(filename)s %(lineno)d",
            "class": "pythonjsonlogger.jsonlogger.JsonFormatter",
        },
    },
    "handlers": {
        "default": {
            "level": "DEBUG",
            "formatter": "standard",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        }
    },
    "loggers": {
        "": {  # root logger
            "handlers": ["default"],
            "level": os.environ.get("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        }
    },
}
logger = logging.getLogger(__name__)


class Info:
    """An information object to pass data between CLI functions."""

    def __init__(self):  # Note: This object must have an empty constructor.
        """Create a new instance."""
        self.verbose: int = 0
        self.json = False
        self.logger = logging.getLogger(__name__)


# pass_info is a decorator for functions that pass 'Info' objects.
pass_info = click.make_pass_decorator(Info, ensure=True)


@click.group()
@click.option("--verbose", "-v", count=True, help="Enable verbose output.")
@click.option("--json", "-j", default=False, is_flag=True, help="Enable json output.")
@pass_info
def cli(info: Info, verbose: int, json: bool):
    """Run adsentry CLI."""
    # Use the verbosity count to determine the logging level...
    if verbose > 0:
        logging_config["loggers"][""]["level"] = "DEBUG"

    if json or os.environ.get("LOG_FORMAT", "").lower() == "json":
        logging_config["handlers"]["default"]["formatter"] = "json"
    logging.config.dictConfig(logging_config)
    info.verbose = verbose
    info.json = json


@cli.command()
def version():
    """Get the library version."""
    click.echo(click.style(ADSENTRY_VERSION, bold=True))


def print_run_summary(result):
    table = PrettyTable()
    table.field_names = ["Metric", "Value"]
    table.align["Metric"] = "l"
    table.add_rows(
        [
            ["Success", result.success],
            ["Clients processed", result.clients_processed],
            ["Metrics evaluated", result.metrics_evaluated],
            ["Checks run", result.checks_run],
            ["Anomalies found", result.anomalies_found],
            ["Alerts created", result.alerts_created],
            ["Alerts skipped", result.alerts_skipped],
            ["Alerts failed", result.alerts_failed],
            ["Errors", len(result.errors)],
        ]
    )
    print(table)

    if result.summaries:
        tenants_table = PrettyTable()
        tenants_table.field_names = ["Tenant", "Metrics", "Critical", "Warning"]
        for summary in result.summaries:
            tenants_table.add_row(
                [
                    summary.tenant_name,
                    summary.metrics_evaluated,
                    summary.critical_count,
                    summary.warning_count,
                ]
            )
        print(tenants_table)

    for error in result.errors:
        click.echo(click.style(f"  - {error}", fg="red"))


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="CONFIG_PATH",
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="The monitoring config file (YAML or JSON)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    envvar="DRY_RUN",
    help="Evaluate and log without creating tasks or writing fingerprints",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--check",
    "check_ids",
    multiple=True,
    type=click.Choice([check.id for check in CHECKS]),
    help="Only run these checks (can be repeated)",
)
@click.option(
    "--store-path",
    type=click.Path(dir_okay=False),
    required=False,
    help="Fingerprint store file (json store only)",
)
@pass_info
def run(
    info: Info,
    config_path: str,
    dry_run: bool,
    debug: bool,
    check_ids: tuple[str],
    store_path: str,
):
    """Run one monitoring pass over all tenants."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        monitoring_config = load_config(config_path)
    except ConfigError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red", bold=True))
        sys.exit(1)

    if dry_run:
        click.echo(click.style("Dry run: no tasks will be created", bold=True))

    retry_policy = RetryPolicy.from_config(monitoring_config.global_config.rate_limiting)
    store_kwargs = {"file_path": store_path} if store_path else {}
    try:
        dispatcher = ProvidersFactory.get_dispatcher(retry_policy)
        fingerprint_store = FingerprintStoreFactory.get_store(**store_kwargs)
        monitor_manager = MonitorManager(
            monitoring_config,
            fingerprint_store,
            dispatcher,
            dry_run=dry_run,
            check_ids=list(check_ids) or None,
        )
        result = monitor_manager.run()
    except (ProviderException, FingerprintStoreSaveError) as e:
        logger.exception("Monitoring run failed")
        click.echo(click.style(f"Monitoring run failed: {e}", fg="red", bold=True))
        sys.exit(1)

    if info.json:
        click.echo(result.model_dump_json(indent=2))
    else:
        print_run_summary(result)

    if not result.success:
        sys.exit(1)


@cli.command(name="checks")
@pass_info
def list_checks(info: Info):
    """List the available platform checks."""
    if info.json:
        click.echo(
            json.dumps(
                [
                    {"id": check.id, "name": check.name, "description": check.description}
                    for check in CHECKS
                ],
                indent=2,
            )
        )
        return

    table = PrettyTable()
    table.field_names = ["ID", "Name", "Description"]
    for check in CHECKS:
        table.add_row([check.id, check.name, check.description])
    print(table)


@cli.command()
@click.option(
    "--cleanup",
    "cleanup_days",
    type=int,
    required=False,
    help="Remove fingerprints older than this many days",
)
@click.option(
    "--store-path",
    type=click.Path(dir_okay=False),
    required=False,
    help="Fingerprint store file (json store only)",
)
def fingerprints(cleanup_days: int, store_path: str):
    """Inspect or clean up the fingerprint store."""
    store_kwargs = {"file_path": store_path} if store_path else {}
    fingerprint_store = FingerprintStoreFactory.get_store(**store_kwargs)
    if cleanup_days is not None:
        removed = fingerprint_store.cleanup(cleanup_days)
        try:
            fingerprint_store.save()
        except FingerprintStoreSaveError as e:
            click.echo(click.style(str(e), fg="red", bold=True))
            sys.exit(1)
        click.echo(click.style(f"Removed {removed} fingerprints", bold=True))
    click.echo(f"Fingerprints stored: {fingerprint_store.count}")


if __name__ == "__main__":
    cli(auto_envvar_prefix="ADSENTRY")
