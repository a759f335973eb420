# Overview: Flask CLI command groups for bootstrap, accounts, and demo data.

# backend/salesops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default users and loss reasons.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users list
# - python -m flask users create --username office2 --password "Password123!" --role clerk
#
# Demo data:
# - python -m flask seed demo
#   One driver, one route with five customers in stop order, four products.

import click
from flask.cli import with_appcontext

from .extensions import db
from .domain import ROLES
from .models import User, Driver, DeliveryRoute, Customer, Product, LossReason, RouteAssignment
from .services.auth_service import create_user, PasswordValidationError


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin", "admin"),
    ("manager", "manager"),
    ("area", "area_manager"),
    ("office", "clerk"),
]

DEFAULT_LOSS_REASONS = [
    "Melted",
    "Damaged packaging",
    "Expired",
    "Customer refused",
    "Missing",
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables, default users and loss reasons.

    Default users (all with password "Password123!"):
    admin/admin, manager/manager, area/area_manager, office/clerk

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing sales operations...")
    db.create_all()

    click.echo("\nUSERS Creating default users...")
    for username, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP User '{username}' already exists")
            continue
        create_user(username=username, password=DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user '{username}' with role '{role}'")

    click.echo("\nLIST Creating loss reasons...")
    created = 0
    for description in DEFAULT_LOSS_REASONS:
        if not db.session.query(LossReason).filter_by(reason_description=description).first():
            db.session.add(LossReason(reason_description=description, is_active=True))
            created += 1
    db.session.commit()
    click.echo(f"PASS Loss reasons created: {created}")

    click.echo("\nDONE System initialized. Default password: Password123!")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """Back-office account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """
    Create a new user.

    Password must be 8+ characters with uppercase, lowercase, digit and
    special character.
    """
    try:
        user = create_user(username=username, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<15} {'Active'}")
    click.echo("=" * 60)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<15} {'Yes' if user.is_active else 'No'}")


@click.group('seed')
def seed_group():
    """Demo data for local development."""


@seed_group.command('demo')
@with_appcontext
def seed_demo():
    """Create a demo driver, route, customers and products (idempotent)."""
    driver = db.session.query(Driver).filter_by(first_name="Somchai", last_name="Demo").first()
    if not driver:
        driver = Driver(first_name="Somchai", last_name="Demo", phone="0800000001", is_active=True)
        db.session.add(driver)

    route = db.session.query(DeliveryRoute).filter_by(route_name="Demo Route North").first()
    if not route:
        route = DeliveryRoute(route_name="Demo Route North", description="Seeded demo route", is_active=True)
        db.session.add(route)

    products = [
        ("Ice cube bag 20kg", "bag", 4000),
        ("Crushed ice bag 20kg", "bag", 3500),
        ("Ice block", "block", 6000),
        ("Drinking water 20L", "bottle", 1500),
    ]
    for name, unit, price in products:
        if not db.session.query(Product).filter_by(product_name=name).first():
            db.session.add(Product(
                product_name=name,
                unit_of_measure=unit,
                default_unit_price_cents=price,
                is_active=True,
            ))
    db.session.flush()

    customer_names = ["Noodle shop Soi 3", "Mini mart 24", "Fish market stall 7", "Cafe Riverside", "Som Tam Auntie"]
    for sequence, name in enumerate(customer_names, start=1):
        customer = db.session.query(Customer).filter_by(customer_name=name).first()
        if not customer:
            customer = Customer(customer_name=name, is_active=True)
            db.session.add(customer)
            db.session.flush()
        assignment = db.session.query(RouteAssignment).filter_by(
            route_id=route.id, customer_id=customer.id
        ).first()
        if not assignment:
            db.session.add(RouteAssignment(
                route_id=route.id,
                customer_id=customer.id,
                route_sequence=sequence,
                is_active=True,
            ))

    db.session.commit()
    click.echo(f"PASS Demo data ready: driver {driver.id}, route {route.id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(seed_group)
