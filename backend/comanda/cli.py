# Overview: Flask CLI command groups for bootstrap, tenant inspection and maintenance.

# backend/comanda/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Restaurant management (MULTI-TENANT):
# - python -m flask restaurants list
# - python -m flask restaurants create --name "Casa Roma" --email owner@casaroma.test --admin-name "Owner"
#   Create a tenant and its first admin user (prompts for the password).
#
# User inspection/bootstrap:
# - python -m flask users list [--restaurant-id 1]
# - python -m flask users create --restaurant-id 1 --email waiter@casaroma.test --name "Ana" --role waiter
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired and revoked sessions older than 30 days.
# - python -m flask costs recalculate --restaurant-id 1
#   Recompute stored costs of every semifinished, recipe and product.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Restaurant, User
from .models.auth import ROLES
from .services import costing_service, session_service
from .services.auth_service import (
    PasswordValidationError,
    RegistrationError,
    create_user,
    register_restaurant,
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet. Existing data is untouched."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA for every restaurant!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask restaurants create' to add a tenant.")


@click.group('restaurants')
def restaurants_group():
    """Restaurant (tenant) management commands."""


@restaurants_group.command('list')
@with_appcontext
def list_restaurants():
    restaurants = db.session.query(Restaurant).order_by(Restaurant.id.asc()).all()
    if not restaurants:
        click.echo("No restaurants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Slug':<24} {'Name':<32} {'Active':<8} {'Users'}")
    click.echo("="*80)
    for restaurant in restaurants:
        user_count = db.session.query(User).filter_by(restaurant_id=restaurant.id).count()
        active_str = "Yes" if restaurant.is_active else "No"
        click.echo(f"{restaurant.id:<5} {restaurant.slug:<24} {restaurant.name:<32} {active_str:<8} {user_count}")
    click.echo("="*80 + "\n")


@restaurants_group.command('create')
@click.option('--name', prompt=True, help='Restaurant name')
@click.option('--email', prompt=True, help='Admin email (login)')
@click.option('--admin-name', prompt=True, help='Admin display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def create_restaurant_cli(name, email, admin_name, password):
    """
    Create a restaurant and its first admin user.

    MULTI-TENANT: Same path as POST /api/auth/register.
    """
    try:
        restaurant, user = register_restaurant(
            restaurant_name=name,
            name=admin_name,
            email=email,
            password=password,
        )
    except (RegistrationError, PasswordValidationError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created restaurant: {restaurant.name} (ID: {restaurant.id}, Slug: {restaurant.slug})")
    click.echo(f"PASS Created admin user: {user.email} (ID: {user.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--restaurant-id', type=int, help='Filter by restaurant ID')
@with_appcontext
def list_users(restaurant_id):
    """List users with their role."""
    query = db.session.query(User)
    if restaurant_id:
        query = query.filter_by(restaurant_id=restaurant_id)

    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Rest':<5} {'Email':<34} {'Name':<20} {'Active':<8} {'Role'}")
    click.echo("="*90)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.restaurant_id:<5} {user.email:<34} {user.name:<20} {active_str:<8} {user.role}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--restaurant-id', type=int, required=True, help='Restaurant ID')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(restaurant_id, email, name, password, role):
    """
    Create a user inside an existing restaurant.

    Password must meet strength requirements (8+ chars, upper, lower, digit).
    """
    try:
        user = create_user(
            restaurant_id=restaurant_id,
            email=email,
            name=name,
            password=password,
            role=role,
        )
    except (RegistrationError, PasswordValidationError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions_cli():
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@click.group('costs')
def costs_group():
    """Cost maintenance commands."""


@costs_group.command('recalculate')
@click.option('--restaurant-id', type=int, required=True, help='Restaurant ID')
@with_appcontext
def recalculate_costs_cli(restaurant_id):
    """
    Recompute stored costs bottom-up: semifinished, then recipes, then products.

    Ingredient cost changes never propagate on their own; run this after
    bulk price updates.
    """
    restaurant = db.session.get(Restaurant, restaurant_id)
    if restaurant is None:
        click.echo(f"FAIL Restaurant ID {restaurant_id} not found")
        return

    counts = costing_service.recalculate_all(restaurant_id)
    db.session.commit()
    click.echo(
        f"PASS Recalculated {counts['semifinished']} semifinished, "
        f"{counts['recipes']} recipes, {counts['products']} products."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(restaurants_group)  # Multi-tenant restaurant management
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(costs_group)
