"""
Flask CLI commands for stock ledger maintenance.

Commands:
- flask init-db: Create all tables
- flask verify-stock: Replay the ledger and report drifted stock positions
"""

import sys

import click
from app.database import create_all, db_session
from app.services.stock_service import verify_positions


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the stock ledger tables."""
        create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('verify-stock')
    @click.option('--tenant-id', required=True, help='Tenant to verify')
    @click.option('--warehouse-id', default=None, help='Limit to one warehouse')
    def verify_stock(tenant_id, warehouse_id):
        """Check every stock position against a replay of its movements."""
        try:
            drifts = verify_positions(db_session, tenant_id, warehouse_id)
        finally:
            db_session.remove()

        if not drifts:
            click.echo(click.style('All stock positions match the ledger.', fg='green'))
            return

        click.echo(click.style(f'{len(drifts)} stock position(s) drifted from the ledger:', fg='red', bold=True))
        for drift in drifts:
            click.echo(
                f"  warehouse={drift['warehouse_id']} product={drift['product_id']} "
                f"quantity {drift['stored_quantity']} != {drift['expected_quantity']} | "
                f"average cost {drift['stored_average_cost']} != {drift['expected_average_cost']} | "
                f"version {drift['version']} vs {drift['movements']} movements"
            )
        sys.exit(1)
