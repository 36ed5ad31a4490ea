# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/rpbiz/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Businesses:
# - python -m flask businesses list
#   List all businesses with owner, type and member count.
# - python -m flask businesses rotate-key 3
#   Issue a new game-integration API key for business 3.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired or revoked identity sessions.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Business
from .services import identity_service
from .services.business_service import generate_api_key
from .services.invoice_service import ensure_invoice_sequence


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that don't exist yet and backfill invoice counters."""
    db.create_all()

    created = 0
    for business in db.session.query(Business).all():
        if business.invoice_sequence is None:
            ensure_invoice_sequence(business.id)
            created += 1
    db.session.commit()

    click.echo(f"PASS Database ready ({created} invoice sequences created).")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('businesses')
def businesses_group():
    """Business inspection commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses_cli():
    """List all businesses."""
    businesses = db.session.query(Business).order_by(Business.id).all()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Type':<12} {'Owner':<30} {'Members':<8} {'Active'}")
    click.echo("=" * 90)
    for b in businesses:
        active_str = "Yes" if b.is_active else "No"
        click.echo(
            f"{b.id:<5} {b.name[:30]:<30} {b.business_type:<12} {b.owner_id[:30]:<30} "
            f"{len(b.employees):<8} {active_str}"
        )
    click.echo("=" * 90 + "\n")


@businesses_group.command('rotate-key')
@click.argument('business_id', type=int)
@with_appcontext
def rotate_key_cli(business_id):
    """Issue a new API key for a business; the old key stops working."""
    business = db.session.query(Business).filter_by(id=business_id).first()
    if not business:
        raise click.ClickException(f"Business {business_id} not found")

    business.api_key = generate_api_key()
    db.session.commit()
    click.echo(f"PASS New API key for {business.name}: {business.api_key}")


@click.group('sessions')
def sessions_group():
    """Identity session maintenance."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked identity sessions."""
    deleted = identity_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(sessions_group)
