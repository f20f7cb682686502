# Overview: Flask CLI command groups for bootstrap, inspection, and legacy migration.

# backend/printshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--branch "Branch 1"] [--owner-username owner] [--owner-password ...]
#   Idempotent bootstrap: creates tables, a default branch with default pricing, and the owner.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users create-owner --username owner --password "Password123!"
# - python -m flask users create-staff --username staff1 --password "Password123!" --branch-id 1
# - python -m flask users list [--branch-id 1]
#
# Catalog seeding:
# - python -m flask catalog add --branch-id 1 --kind FACULTY --name "Medicine"
# - python -m flask catalog add --branch-id 1 --kind TRACK --name "General" --parent-id 1
#
# Legacy migration:
# - python -m flask legacy import-json path/to/db.json
#   Import a legacy JSON store into an empty database (one transaction).

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ServiceError
from .models import Branch, User
from .models.auth import ROLE_OWNER
from .services import auth_service
from .services import branch_service
from .services import catalog_service
from .services import legacy_import_service


DEFAULT_BRANCH_NAME = "Branch 1"
DEFAULT_OWNER_USERNAME = "owner"
DEFAULT_OWNER_PASSWORD = "Password123!"


def _first_owner() -> User:
    owner = db.session.query(User).filter_by(role=ROLE_OWNER).order_by(User.id.asc()).first()
    if not owner:
        raise click.ClickException("No owner account found. Run 'flask system init' first.")
    return owner


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default=DEFAULT_BRANCH_NAME, help='Default branch name')
@click.option('--owner-username', default=DEFAULT_OWNER_USERNAME, help='Owner username')
@click.option('--owner-password', default=DEFAULT_OWNER_PASSWORD, help='Owner password')
@with_appcontext
def init_system(branch_name, owner_username, owner_password):
    """
    Initialize the print shop: schema, default branch and owner account.

    SECURITY: Change the owner password immediately in production!
    """
    click.echo("START Initializing print shop...")

    db.create_all()
    click.echo("PASS Schema ready")

    owner = db.session.query(User).filter_by(role=ROLE_OWNER).first()
    if not owner:
        owner = auth_service.create_owner(owner_username, owner_password)
        click.echo(f"PASS Created owner: {owner.username} (ID: {owner.id})")
    else:
        click.echo(f"PASS Using existing owner: {owner.username} (ID: {owner.id})")

    branch = db.session.query(Branch).first()
    if not branch:
        branch = branch_service.create_branch(owner, branch_name)
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id}) with default pricing")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    click.echo("DONE Print shop initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including every voucher code and balance!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """Account bootstrap and inspection."""


@users_group.command('create-owner')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_owner(username, password):
    try:
        user = auth_service.create_owner(username, password)
    except ServiceError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(f"PASS Created owner: {user.username} (ID: {user.id})")


@users_group.command('create-staff')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--branch-id', type=int, prompt=True)
@with_appcontext
def create_staff(username, password, branch_id):
    try:
        user = auth_service.create_staff(_first_owner(), username, password, branch_id)
    except ServiceError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(f"PASS Created staff: {user.username} (ID: {user.id}, Branch: {user.branch_id})")


@users_group.command('list')
@click.option('--branch-id', type=int, help='Filter by branch ID')
@with_appcontext
def list_users(branch_id):
    """List all accounts with role, balance and lockout state."""
    query = db.session.query(User)
    if branch_id:
        query = query.filter_by(branch_id=branch_id)

    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Branch':<7} {'Username':<20} {'Role':<14} {'Credit':<8} {'Blocked'}")
    click.echo("="*80)
    for user in users:
        blocked = f"Yes ({user.failed_redeem_count})" if user.blocked else "No"
        click.echo(
            f"{user.id:<5} {str(user.branch_id or '-'):<7} {user.username:<20} "
            f"{user.role:<14} {user.credit_balance:<8} {blocked}"
        )


@click.group('catalog')
def catalog_group():
    """Curriculum catalog seeding."""


@catalog_group.command('add')
@click.option('--branch-id', type=int, required=True)
@click.option('--kind', required=True, help='FACULTY, TRACK, YEAR, MODULE, GROUP or PROFESSOR')
@click.option('--name', required=True)
@click.option('--parent-id', type=int, default=None)
@with_appcontext
def add_catalog_entry(branch_id, kind, name, parent_id):
    try:
        entry = catalog_service.add_entry(branch_id, kind, name, parent_id)
    except ServiceError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(f"PASS Created {entry.kind}: {entry.name} (ID: {entry.id})")


@click.group('legacy')
def legacy_group():
    """Migration from the legacy JSON store."""


@legacy_group.command('import-json')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_json(path):
    """Import a legacy db.json file into an empty database."""
    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON: {e}")

    try:
        counts = legacy_import_service.import_snapshot(data)
    except ServiceError as e:
        raise click.ClickException(f"{e.code}: {e.message}")

    click.echo("PASS Legacy store imported")
    for entity, count in counts.items():
        click.echo(f"   {entity:<16} {count}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(legacy_group)
