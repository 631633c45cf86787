# Overview: Flask CLI command groups for bootstrap, inspection, and scheduled jobs.

# backend/resellerpro/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Plans:
# - python -m flask plans seed
#   Insert or refresh the free/beginner/professional/business plan rows.
#
# Accounts:
# - python -m flask accounts list
#   List reseller accounts with plan and wallet balance.
# - python -m flask accounts create --email owner@shop.in --full-name "Asha Rao" --password "Password123!"
#   Create a reseller account on the free plan (prompts if options are omitted).
#
# Back-office:
# - python -m flask admin hash-password
#   Print a bcrypt hash to put in ADMIN_PASSWORD_HASH.
#
# Scheduled jobs (same work as the /api/cron endpoints):
# - python -m flask cron run enquiry-alert
# - python -m flask cron run order-update
# - python -m flask cron run subscription-check
#
# Database:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Profile
from .services import plan_service, cron_service, admin_service, auth_service
from .services.auth_service import PasswordValidationError
from .validation import ValidationError, ConflictError


@click.group('plans')
def plans_group():
    """Subscription plan catalog."""


@plans_group.command('seed')
@with_appcontext
def seed_plans():
    """Create or refresh plan rows from the built-in plan limits."""
    touched = plan_service.seed_plans()
    click.echo(f"PASS Seeded {touched} plans")
    for plan in plan_service.list_plans():
        limits = plan["limits"]
        click.echo(
            f"  {plan['name']:<14} {plan['price_paise'] / 100:>9.2f} INR  "
            f"orders={limits['orders_per_month'] or 'unlimited'} "
            f"products={limits['products'] or 'unlimited'} "
            f"images={limits['product_images']}"
        )


@click.group('accounts')
def accounts_group():
    """Reseller account inspection and bootstrap."""


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    """List all reseller accounts."""
    profiles = db.session.query(Profile).order_by(Profile.id.asc()).all()

    if not profiles:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Plan':<14} {'Wallet':>10} {'Active':<6}")
    click.echo("=" * 100)

    for profile in profiles:
        sub = profile.subscription
        plan_name = sub.plan.name if sub and sub.plan else "none"
        active_str = "Yes" if profile.is_active else "No"
        click.echo(
            f"{profile.id:<5} {profile.email:<32} {profile.full_name[:24]:<24} {plan_name:<14} "
            f"{profile.wallet_balance_paise / 100:>10.2f} {active_str:<6}"
        )

    click.echo("=" * 100 + "\n")


@accounts_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_account(email, full_name, password, phone):
    """
    Create a reseller account on the free plan.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        profile = auth_service.signup(email=email, password=password, full_name=full_name, phone=phone)
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created account {profile.email} (ID: {profile.id}, referral code: {profile.referral_code})")


@click.group('admin')
def admin_group():
    """Back-office credentials."""


@admin_group.command('hash-password')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
def hash_admin_password(password):
    """Print a bcrypt hash for ADMIN_PASSWORD_HASH."""
    click.echo(admin_service.hash_admin_password(password))


@click.group('cron')
def cron_group():
    """Run scheduled jobs by hand."""


@cron_group.command('run')
@click.argument('job', type=click.Choice(sorted(cron_service.JOBS)))
@with_appcontext
def run_cron_job(job):
    """Run one scheduled job and print its summary."""
    results = cron_service.run_job(job)
    click.echo(f"PASS {job}: {results}")


@click.group('system')
def system_group():
    """Database bootstrap and repair commands."""


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
    plan_service.seed_plans()
    click.echo("PASS Database reset complete; plans seeded")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(plans_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(admin_group)
    app.cli.add_command(cron_group)
    app.cli.add_command(system_group)
