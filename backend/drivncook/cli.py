# Overview: Flask CLI command groups for bootstrap, users, notifications and invoices.

# backend/drivncook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` when running migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role ADMIN]
#   List users with role and active status.
# - python -m flask users create --email admin@drivncook.local --password "Password123!" --role SUPER_ADMIN
#   Create a user (prompts if options are omitted).
#
# Notifications:
# - python -m flask notifications retry-failed --limit 100
#   Re-send email deliveries recorded as FAILED.
#
# Invoices:
# - python -m flask invoices mark-overdue
#   Flip PENDING invoices past their due date to OVERDUE and notify.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services import invoice_service, notification_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an administrator.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(USER_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List users with their role."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<12} {'Active':<8} {'Franchise'}")
    click.echo("="*90)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        franchise = user.franchise.business_name if user.franchise else "-"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<12} {active_str:<8} {franchise}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(sorted(USER_ROLES)), prompt=True)
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cli(email, password, role, first_name, last_name):
    """Create an active user."""
    try:
        user = create_user(
            email=email,
            password=password,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
    except PasswordValidationError as e:
        db.session.rollback()
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('notifications')
def notifications_group():
    """Notification delivery commands."""


@notifications_group.command('retry-failed')
@click.option('--limit', type=int, default=100, show_default=True)
@with_appcontext
def retry_failed_cli(limit):
    """Re-send FAILED email deliveries, oldest first."""
    counts = notification_service.retry_failed(limit=limit)
    click.echo(
        f"Retried {counts['retried']} deliveries: {counts['sent']} sent, {counts['failed']} still failing."
    )


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('mark-overdue')
@with_appcontext
def mark_overdue_cli():
    """Flip PENDING invoices past their due date to OVERDUE."""
    count = invoice_service.mark_overdue()
    click.echo(f"Marked {count} invoices as OVERDUE.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(invoices_group)
