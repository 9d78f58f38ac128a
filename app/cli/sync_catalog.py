# app/cli/sync_catalog.py
"""
Command line entry point for the catalog sync engine.

    catalog-sync health
    catalog-sync run [--force-all] [--max-concurrent N] [--deadline S]
    catalog-sync product ID
    catalog-sync analyze
"""
import sys
import asyncio
import click

from app.core.logging_config import configure_logging
from app.core.exceptions import PreconditionFailedError, ProductNotFoundError


def _service():
    from app.dependencies import get_catalog_sync_service
    return get_catalog_sync_service()


def _print_report(report):
    if not report.ready:
        click.echo("Sync refused, catalog sync is not ready:")
        for issue in report.issues:
            click.echo(f"  - {issue}")
        return

    click.echo(f"Processed {report.processed}: {report.succeeded} succeeded, {report.failed} failed")
    click.echo(f"  Products: {report.created} created, {report.updated} updated")
    click.echo(f"  Prices: {report.reused} reused")
    click.echo(f"  Already in sync: {report.skipped}")
    if report.aborted:
        click.echo(f"  Deadline reached, not started: {', '.join(str(i) for i in report.aborted)}")
    for result in report.results:
        status = "ok" if result.success else "FAILED"
        click.echo(f"[{status}] {result.product_id} {result.title}")
        for action in result.actions:
            click.echo(f"    {action}")
        if result.error:
            click.echo(f"    error: {result.error}")


@click.group()
@click.option('--log-level', default=None, help='Override LOG_LEVEL')
def cli(log_level):
    """Keep the local product catalog and Stripe in step."""
    configure_logging(log_level)


@cli.command()
def health():
    """Read-only readiness check"""
    report = asyncio.run(_service().run_health_check(include_counts=True))
    click.echo(f"Mode: {report.mode}")
    click.echo(f"Local schema ready: {report.local_schema_ready}")
    click.echo(f"Stripe configured: {report.remote_configured}")
    click.echo(f"Default tax code: {report.default_tax_code} ({report.tax_code_source})")
    if report.product_count is not None:
        click.echo(f"Products: {report.product_count} eligible, {report.synced_count} synced")
    for issue in report.issues:
        click.echo(f"  - {issue}")
    sys.exit(0 if report.ready else 1)


@cli.command()
@click.option('--force-all', is_flag=True, help='Re-send every product, even without drift')
@click.option('--max-concurrent', type=click.IntRange(1, 8), default=None, help='Products reconciled at once')
@click.option('--deadline', type=click.FloatRange(min=0, min_open=True), default=None, help='Seconds after which unstarted products are skipped')
def run(force_all, max_concurrent, deadline):
    """Reconcile the whole catalog"""
    report = asyncio.run(_service().run_sync(
        force_all=force_all,
        max_concurrent=max_concurrent,
        deadline_seconds=deadline,
    ))
    _print_report(report)
    sys.exit(0 if report.success else 1)


@cli.command()
@click.argument('product_id', type=int)
def product(product_id):
    """Force-sync one product"""
    try:
        result = asyncio.run(_service().reconcile_product(product_id))
    except ProductNotFoundError as e:
        raise click.ClickException(str(e))
    except PreconditionFailedError as e:
        raise click.ClickException(str(e))

    for action in result.actions:
        click.echo(action)
    if not result.success:
        raise click.ClickException(result.error or "sync failed")


@cli.command()
def analyze():
    """Drift analysis without writing anything"""
    analysis = asyncio.run(_service().analyze_catalog())
    click.echo(f"Products: {analysis.total} ({analysis.in_sync} in sync, {analysis.never_synced} never synced)")
    click.echo(f"Name mismatches: {analysis.name_mismatches}")
    click.echo(f"Price mismatches: {analysis.price_mismatches}")
    click.echo(f"Tax code issues: {analysis.tax_code_issues} (default {analysis.default_tax_code})")
    for entry in analysis.products:
        if entry["discrepancies"]:
            click.echo(f"{entry['product_id']} {entry['title']}")
            for discrepancy in entry["discrepancies"]:
                click.echo(f"    {discrepancy}")
    for error in analysis.errors:
        click.echo(f"{error['product_id']} error: {error['error']}")


if __name__ == "__main__":
    cli()
