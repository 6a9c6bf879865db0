# Overview: Flask CLI command groups for bootstrap, seeding, and maintenance.

# backend/canteen/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (if missing), a main canteen and a super admin.
#
# Users:
# - python -m flask users create --username alice --email alice@canteen.local --role manager --canteen-id 2
#   Create a user (prompts for the password).
# - python -m flask users list
#
# Canteens and items:
# - python -m flask canteens create --name "Block A" --location "Ground floor" --contact "555-0100"
# - python -m flask canteens list
# - python -m flask items create --name "Tea" --category Beverages --unit cup --mrp-cents 1000
# - python -m flask items create --name "Crate" --category Returns --unit pcs --stock-effect increases
#
# Maintenance:
# - python -m flask maintenance auto-unlock
#   Unlock every canteen locked before today's local midnight. Run daily from cron (00:00).

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Canteen, User
from .models.auth import ROLE_SUPER_ADMIN, ROLES
from .models.canteens import CANTEEN_TYPE_MAIN, CANTEEN_TYPES
from .models.catalog import STOCK_EFFECT_DECREASES, STOCK_EFFECTS
from .services import canteen_service, catalog_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Super admin username')
@click.option('--admin-email', default='admin@canteen.local', help='Super admin email')
@click.option('--admin-password', default='Password123!', help='Super admin password')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Initialize the store: tables, a main canteen and a super admin.

    Idempotent. SECURITY: change the default password in production!
    """
    click.echo("START Initializing canteen store...")

    db.create_all()
    click.echo("PASS Tables ready")

    canteen = db.session.query(Canteen).filter_by(type=CANTEEN_TYPE_MAIN).first()
    if canteen is None:
        canteen = canteen_service.create_canteen("Main Canteen", "Main building", "", type=CANTEEN_TYPE_MAIN)
        click.echo(f"PASS Created main canteen: {canteen.name} (ID: {canteen.id})")
    else:
        click.echo(f"PASS Using existing main canteen: {canteen.name} (ID: {canteen.id})")

    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(admin_username, admin_email, admin_password, role=ROLE_SUPER_ADMIN)
            click.echo(f"PASS Created super admin: {admin_username} ({admin_email})")
        except ServiceError as e:
            click.echo(f"FAIL Failed to create super admin: {e.message}")
            return

    click.echo("DONE Canteen store initialized")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--canteen-id', type=int, default=None, help='Assigned canteen (required for managers)')
@with_appcontext
def create_user_cli(username, email, name, password, role, canteen_id):
    """
    Create a new user.

    Password must meet strength requirements: 8+ chars, uppercase,
    lowercase, digit, special char.
    """
    try:
        user = create_user(username, email, password, name=name, role=role, canteen_id=canteen_id)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        canteen = f" canteen={user.canteen_id}" if user.canteen_id else ""
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<12} {status}{canteen}")


@click.group('canteens')
def canteens_group():
    """Canteen commands."""


@canteens_group.command('create')
@click.option('--name', required=True, help='Canteen name')
@click.option('--location', required=True, help='Location')
@click.option('--contact', 'contact_number', default='', help='Contact number')
@click.option('--type', 'canteen_type', type=click.Choice(list(CANTEEN_TYPES)), default='sub', help='Canteen type')
@with_appcontext
def create_canteen_cli(name, location, contact_number, canteen_type):
    try:
        canteen = canteen_service.create_canteen(name, location, contact_number, type=canteen_type)
        click.echo(f"PASS Created canteen: {canteen.name} (ID: {canteen.id})")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create canteen: {e.message}")


@canteens_group.command('list')
@with_appcontext
def list_canteens_cli():
    for canteen in canteen_service.list_canteens():
        lock = f"LOCKED ({canteen.lock_reason})" if canteen.is_locked else "open"
        click.echo(f"{canteen.id:>4}  {canteen.name:<24} {canteen.type:<5} {lock}")


@click.group('items')
def items_group():
    """Catalog commands."""


@items_group.command('create')
@click.option('--name', required=True, help='Item name')
@click.option('--category', default='General', help='Category')
@click.option('--unit', default='pcs', help='Unit')
@click.option('--mrp-cents', type=int, default=0, help='MRP in cents')
@click.option('--stock-effect', type=click.Choice(list(STOCK_EFFECTS)), default=STOCK_EFFECT_DECREASES,
              help='How a sale moves stock')
@with_appcontext
def create_item_cli(name, category, unit, mrp_cents, stock_effect):
    try:
        item = catalog_service.create_item(name, category, unit, mrp_cents=mrp_cents, stock_effect=stock_effect)
        click.echo(f"PASS Created item: {item.name} (ID: {item.id}, {item.stock_effect})")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create item: {e.message}")


@click.group('maintenance')
def maintenance_group():
    """Scheduled maintenance commands."""


@maintenance_group.command('auto-unlock')
@with_appcontext
def auto_unlock_cli():
    """Unlock canteens locked before today's local midnight."""
    count = canteen_service.auto_unlock_canteens()
    click.echo(f"PASS Auto-unlock completed: {count} canteens unlocked")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(canteens_group)
    app.cli.add_command(items_group)
    app.cli.add_command(maintenance_group)
