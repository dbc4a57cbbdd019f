# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/laborslip/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to laborslip (PowerShell: $env:FLASK_APP="laborslip").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` when migrations are in play).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management:
# - python -m flask companies list
# - python -m flask companies create --name "範例股份有限公司" --tax-id 12345678 --responsible-person "王小明"
#
# User management:
# - python -m flask users list
# - python -m flask users create --username admin --email admin@example.com --password "Password123" --company-id 1
# - python -m flask users grant --username admin --company-id 2
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, User, IncomeRecord
from .services.auth_service import create_user, grant_company_access, PasswordValidationError
from .services.session_service import cleanup_expired_sessions


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables created")


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


# =============================================================================
# COMPANY MANAGEMENT
# =============================================================================

@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    """List all companies."""
    companies = db.session.query(Company).order_by(Company.id).all()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Tax ID':<12} {'Active':<8} {'Reports'}")
    click.echo("="*80)

    for company in companies:
        report_count = db.session.query(IncomeRecord).filter_by(company_id=company.id).count()
        active_str = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.name:<30} {company.tax_id or '-':<12} {active_str:<8} {report_count}")

    click.echo("="*80 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--tax-id', required=True, help='統一編號 (unique)')
@click.option('--responsible-person', default=None, help='負責人')
@with_appcontext
def create_company_cli(name, tax_id, responsible_person):
    """Create a new company."""
    existing = db.session.query(Company).filter_by(tax_id=tax_id).first()
    if existing:
        click.echo(f"FAIL Company with tax id '{tax_id}' already exists")
        return

    company = Company(name=name, tax_id=tax_id, responsible_person=responsible_person, is_active=True)
    db.session.add(company)
    db.session.commit()

    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Tax ID: {company.tax_id})")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their companies."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    for user in users:
        companies = ", ".join(str(m.company_id) for m in user.memberships) or "-"
        active_str = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<9} companies: {companies}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--company-id', 'company_ids', type=int, multiple=True, help='Company to grant (repeatable)')
@with_appcontext
def create_user_cli(username, email, password, company_ids):
    """Create a back-office user."""
    try:
        user = create_user(username, email, password)
    except (ValueError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")

    for company_id in company_ids:
        try:
            grant_company_access(user.id, company_id)
        except ValueError as e:
            click.echo(f"FAIL Company {company_id}: {e}")
            continue
        click.echo(f"PASS Granted company {company_id}")


@users_group.command('grant')
@click.option('--username', required=True, help='Username')
@click.option('--company-id', type=int, required=True, help='Company ID')
@with_appcontext
def grant_user_cli(username, company_id):
    """Grant a user access to a company."""
    user = db.session.query(User).filter_by(username=username.lower()).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    try:
        grant_company_access(user.id, company_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Granted {user.username} access to company {company_id}")


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete expired and revoked sessions older than the retention window."""
    deleted = cleanup_expired_sessions(retention_days)
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
