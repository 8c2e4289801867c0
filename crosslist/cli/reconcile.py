# crosslist/cli/reconcile.py
import asyncio
import logging
from datetime import datetime

import click

from crosslist.core.exceptions import BaseServiceError
from crosslist.core.logging_config import configure_logging
from crosslist.services.reconciliation_service import process_reconciliation

logger = logging.getLogger(__name__)


@click.command()
@click.option('--account', 'account_id', default=None, help='Account to reconcile (defaults to DEFAULT_ACCOUNT_ID)')
@click.option('--dry-run', is_flag=True, help='Show planned withdrawals without changing anything')
def reconcile_command(account_id, dry_run):
    """Withdraw listings whose counterpart sold and adopt unmapped eBay offers"""
    configure_logging()

    start_time = datetime.now()
    logger.info(f"Starting reconciliation at {start_time}")

    try:
        report = asyncio.run(process_reconciliation(account_id=account_id, dry_run=dry_run))
    except BaseServiceError as e:
        logger.exception("Error during reconciliation")
        raise click.ClickException(str(e))

    logger.info(f"Completed reconciliation in {datetime.now() - start_time}")

    if report.skipped:
        click.echo("Another reconciliation is running for this account; nothing done.")
        return

    click.echo(f"\nReconciliation {'plan' if dry_run else 'completed'} for {report.account_id}")
    for action in report.actions:
        if not action.executed:
            status = action.error or "planned"
        else:
            status = "ok" if action.success else f"failed: {action.error}"
        click.echo(
            f"  {action.action.value:<22} {action.destination_sku or '-':<50} "
            f"offer={action.destination_offer_id} stockx={action.source_listing_id} [{status}]"
        )
    click.echo(f"eBay withdrawn: {len(report.withdrawn_from_destination)}")
    click.echo(f"StockX withdrawn: {len(report.withdrawn_from_source)}")
    click.echo(f"Marked sold: {len(report.marked_sold)}")
    click.echo(f"Adopted: {len(report.auto_mapped)}")
    click.echo(f"Ambiguous: {len(report.ambiguous)}")
    click.echo(f"Errors: {len(report.errors)}")


if __name__ == '__main__':
    reconcile_command()
