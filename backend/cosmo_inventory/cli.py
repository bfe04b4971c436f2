# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cosmo_inventory/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-password "..."]
#   Idempotent: creates tables, default locations and categories, and the master user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask locations list
# - python -m flask locations create --name "Warehouse" --code "WH"
#
# Users:
# - python -m flask users list
# - python -m flask users create --username clerk --password "..." --role general --location "Warehouse"
#
# Inventory:
# - python -m flask inventory verify-ledger [--product-id 1] [--location-id 1]
#   Replay movements per key and report rows whose stock does not match.

import click
from flask.cli import with_appcontext

from .errors import InventoryError
from .extensions import db
from .models import Category, Location, User
from .models.auth import ROLE_MASTER, ROLES
from .services import auth_service, catalog_service
from .services.ledger_service import verify_ledger

DEFAULT_LOCATIONS = [
    ("Warehouse", "WH"),
    ("Cheongnyangni", "CRR"),
    ("AK", "AK"),
]

DEFAULT_CATEGORIES = [
    ("Skincare", "SKIN"),
    ("Makeup", "MAKEUP"),
    ("Haircare", "HAIR"),
]


@click.group("system")
def system_group():
    """System bootstrap and repair commands."""


@system_group.command("init")
@click.option("--admin-username", default="admin", help="Master account username")
@click.option("--admin-password", default="Password123!", help="Master account password")
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create tables and seed locations, categories and a master user.

    Existing rows are left alone, so running this twice is harmless.
    """
    click.echo("START Initializing inventory system...")
    db.create_all()

    for name, code in DEFAULT_LOCATIONS:
        if db.session.query(Location).filter_by(name=name).first():
            click.echo(f"WARN  Location '{name}' already exists, skipping...")
            continue
        catalog_service.create_location(name=name, code=code)
        click.echo(f"PASS Created location: {name} ({code})")

    for name, code in DEFAULT_CATEGORIES:
        if db.session.query(Category).filter_by(name=name).first():
            click.echo(f"WARN  Category '{name}' already exists, skipping...")
            continue
        catalog_service.create_category(name=name, code=code)
        click.echo(f"PASS Created category: {name}")
    db.session.commit()

    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            auth_service.create_user(admin_username, admin_password, role=ROLE_MASTER)
            click.echo(f"PASS Created master user: {admin_username}")
        except InventoryError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{admin_username}': {e.message}")

    click.echo("\nDONE Inventory system initialized. Change the master password in production!")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Skip confirmation")
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
    click.echo("PASS Database reset complete. Run 'flask system init' to seed data.")


@click.group("locations")
def locations_group():
    """Location management commands."""


@locations_group.command("list")
@with_appcontext
def list_locations():
    locations = catalog_service.list_locations(include_inactive=True)
    if not locations:
        click.echo("No locations found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active'}")
    click.echo("=" * 60)
    for loc in locations:
        click.echo(f"{loc.id:<5} {loc.name:<30} {loc.code:<15} {'Yes' if loc.is_active else 'No'}")
    click.echo("=" * 60 + "\n")


@locations_group.command("create")
@click.option("--name", required=True, help="Location name")
@click.option("--code", required=True, help="Short location code")
@click.option("--description", default=None, help="Description")
@with_appcontext
def create_location(name, code, description):
    try:
        location = catalog_service.create_location(name=name, code=code, description=description)
        db.session.commit()
    except InventoryError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created location: {location.name} (ID: {location.id})")


@click.group("users")
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command("list")
@with_appcontext
def list_users():
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Location':<20} {'Threshold':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        location = user.location.name if user.location else "-"
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.role:<10} {location:<20} "
            f"{user.alert_threshold:<10} {'Yes' if user.is_active else 'No'}"
        )
    click.echo("=" * 80 + "\n")


@users_group.command("create")
@click.option("--username", prompt=True, help="Username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@click.option("--role", type=click.Choice(ROLES), default="general", show_default=True)
@click.option("--location", default=None, help="Assigned location name (required for general users)")
@with_appcontext
def create_user_cli(username, password, role, location):
    try:
        user = auth_service.create_user(username, password, role=role, location=location)
    except InventoryError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@click.group("inventory")
def inventory_group():
    """Inventory maintenance commands."""


@inventory_group.command("verify-ledger")
@click.option("--product-id", type=int, default=None)
@click.option("--location-id", type=int, default=None)
@with_appcontext
def verify_ledger_cli(product_id, location_id):
    """Replay the movement ledger and compare with current stock."""
    mismatches = verify_ledger(product_id=product_id, location_id=location_id)
    if not mismatches:
        click.echo("PASS Ledger matches current stock for every inventory row.")
        return

    click.echo(f"FAIL {len(mismatches)} inventory row(s) do not match their ledger:")
    for m in mismatches:
        click.echo(
            f"  inventory_id={m['inventory_id']} product_id={m['product_id']} "
            f"location_id={m['location_id']} batch={m['batch_code']} "
            f"stock={m['current_stock']} replayed={m['replayed_stock']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
