# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/roomcount/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent). Use `flask db upgrade` for migrated deployments.
# - python -m flask system seed
#   Idempotent demo data: admin/manager/user accounts, rooms, products, room assignments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username alice --role manager
#   Create a user.
# - python -m flask users issue-token --username alice [--hours 8]
#   Print a bearer token for the user (plaintext is shown once, only the hash is stored).

from decimal import Decimal

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Room, RoomProduct, User, ROLES
from .services import identity_service


DEMO_USERS = [
    ("admin", "admin"),
    ("manager", "manager"),
    ("user", "user"),
]

DEMO_ROOMS = [
    ("Kitchen", "Main kitchen area"),
    ("Bar", "Bar and beverage area"),
    ("Dry Storage", "Dry goods storage area"),
    ("Freezer", "Main freezer"),
    ("Refrigerator", "Main refrigerator"),
]

# (sku, name, unit_type, unit_value, description)
DEMO_PRODUCTS = [
    ("FL-001", "Flour", "weight", "0.45", "5lb bag of all-purpose flour"),
    ("SG-001", "Sugar", "weight", "0.65", "4lb bag of granulated sugar"),
    ("BT-001", "Butter", "count", "4.25", "1lb package of unsalted butter"),
    ("EG-001", "Eggs", "count", "0.25", "Large eggs"),
    ("MK-001", "Milk", "count", "3.75", "Gallon of whole milk"),
    ("CB-001", "Chicken Breast", "weight", "2.99", "Boneless, skinless chicken breast"),
    ("GB-001", "Ground Beef", "weight", "4.50", "80/20 ground beef"),
    ("TM-001", "Tomatoes", "count", "0.75", "Roma tomatoes"),
    ("ON-001", "Onions", "count", "0.50", "Yellow onions"),
    ("PT-001", "Potatoes", "count", "0.35", "Russet potatoes"),
]

# room name -> product skus, in display order
DEMO_ASSIGNMENTS = {
    "Dry Storage": ["FL-001", "SG-001", "ON-001", "PT-001"],
    "Refrigerator": ["BT-001", "EG-001", "MK-001", "TM-001"],
    "Freezer": ["CB-001", "GB-001"],
    "Kitchen": ["ON-001", "TM-001", "PT-001"],
}


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@with_appcontext
def seed_system():
    """
    Load demo users, rooms, products and room assignments.

    Existing rows (matched by username, room name or SKU) are left alone.
    """
    db.create_all()

    for username, role in DEMO_USERS:
        if not db.session.query(User).filter_by(username=username).first():
            db.session.add(User(username=username, role=role, is_active=True))
            click.echo(f"PASS Created user: {username} ({role})")

    rooms = {}
    for name, description in DEMO_ROOMS:
        room = db.session.query(Room).filter_by(name=name).first()
        if not room:
            room = Room(name=name, description=description)
            db.session.add(room)
            click.echo(f"PASS Created room: {name}")
        rooms[name] = room

    products = {}
    for sku, name, unit_type, unit_value, description in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if not product:
            product = Product(
                sku=sku,
                name=name,
                unit_type=unit_type,
                unit_value=Decimal(unit_value),
                description=description,
            )
            db.session.add(product)
            click.echo(f"PASS Created product: {sku} {name}")
        products[sku] = product

    db.session.flush()

    for room_name, skus in DEMO_ASSIGNMENTS.items():
        room = rooms[room_name]
        for order, sku in enumerate(skus, start=1):
            product = products[sku]
            exists = db.session.query(RoomProduct).filter_by(
                room_id=room.id, product_id=product.id
            ).first()
            if not exists:
                db.session.add(RoomProduct(room_id=room.id, product_id=product.id, display_order=order))

    db.session.commit()
    click.echo("PASS Demo data loaded")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<8} {status}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='user', show_default=True)
@with_appcontext
def create_user(username, role):
    """Create a user."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL User already exists: {username}")
        raise SystemExit(1)
    user = User(username=username, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('issue-token')
@click.option('--username', prompt=True)
@click.option('--hours', type=int, default=None, help='Token lifetime (defaults to SESSION_TOKEN_TTL_HOURS)')
@with_appcontext
def issue_token(username, hours):
    """Print a bearer token for a user."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User not found: {username}")
        raise SystemExit(1)
    ttl = timedelta(hours=hours) if hours else None
    try:
        record, token = identity_service.issue_token(user.id, ttl=ttl)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Token for {user.username} (expires {record.expires_at:%Y-%m-%d %H:%M} UTC):")
    click.echo(token)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
