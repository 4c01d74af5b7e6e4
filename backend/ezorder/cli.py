# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/ezorder/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--restaurant "Main"] [--password "Password123!"]
#   Idempotent bootstrap: tables, permission catalog, first restaurant and a SuperAdmin.
# - python -m flask system seed-permissions
#   Insert/refresh the permission catalog only.
#
# Users and roles:
# - python -m flask users create --username cajero1 --email cajero1@ezorder.local --password "Password123!" --tier 3 --role-id 2 --restaurant-id 1
# - python -m flask roles list
#
# Cash sessions:
# - python -m flask cash sessions [--restaurant-id 1] [--state open] [--limit 20]

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import CashSession, CustomRole, Restaurant, User
from .services import auth_service, permission_service
from .services.record_store import ElevatedRecordStore
from .time_utils import to_utc_z


def _store() -> ElevatedRecordStore:
    return ElevatedRecordStore(db.session)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--restaurant', 'restaurant_name', default='Main Restaurant', help='First restaurant name')
@click.option('--username', default='superadmin', help='SuperAdmin username')
@click.option('--email', default='superadmin@ezorder.local', help='SuperAdmin email')
@click.option('--password', default='Password123!', help='SuperAdmin password')
@with_appcontext
def init_system(restaurant_name, username, email, password):
    """
    Create tables, seed permissions, first restaurant and a SuperAdmin.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing ezorder...")

    db.create_all()
    store = _store()

    created = permission_service.initialize_permissions(store)
    click.echo(f"PASS Permission catalog ready ({created} created)")

    restaurant = store.find_one(Restaurant, order_by="id")
    if not restaurant:
        restaurant = store.insert(Restaurant, {"name": restaurant_name, "is_active": True})
        store.commit()
        click.echo(f"PASS Created restaurant: {restaurant.name} (ID: {restaurant.id})")
    else:
        click.echo(f"PASS Using existing restaurant: {restaurant.name} (ID: {restaurant.id})")

    if store.find_one(User, {"username": username}):
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        try:
            user = auth_service.create_user(
                store,
                username=username,
                email=email,
                password=password,
                display_name="Super Admin",
                role_tier_id=auth_service.ROLE_TIER_SUPER_ADMIN,
            )
            auth_service.add_restaurant_membership(store, user.id, restaurant.id, is_owner=True)
            click.echo(f"PASS Created SuperAdmin: {username} ({email})")
        except ServiceError as e:
            click.echo(f"FAIL Could not create SuperAdmin: {e.message}")

    click.echo("DONE ezorder initialized")


@system_group.command('seed-permissions')
@with_appcontext
def seed_permissions():
    """Insert missing permissions and refresh descriptions."""
    created = permission_service.initialize_permissions(_store())
    click.echo(f"PASS {created} permissions created")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--display-name', default=None)
@click.option('--tier', type=click.IntRange(1, 3), default=3, help='1=SuperAdmin, 2=Admin, 3=Basic')
@click.option('--role-id', type=int, default=None, help='Custom role id')
@click.option('--restaurant-id', type=int, default=None, help='Home restaurant id')
@click.option('--owner', is_flag=True, help='Also record an owner membership for the home restaurant')
@with_appcontext
def create_user_cli(username, email, password, display_name, tier, role_id, restaurant_id, owner):
    store = _store()
    try:
        user = auth_service.create_user(
            store,
            username=username,
            email=email,
            password=password,
            display_name=display_name,
            role_tier_id=tier,
            custom_role_id=role_id,
            restaurant_id=restaurant_id,
        )
        if restaurant_id is not None:
            auth_service.add_restaurant_membership(store, user.id, restaurant_id, is_owner=owner)
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, tier {user.role_tier_id})")


@click.group('roles')
def roles_group():
    """Custom role inspection commands."""


@roles_group.command('list')
@with_appcontext
def list_roles_cli():
    roles = _store().find(CustomRole, order_by="name")
    if not roles:
        click.echo("No custom roles found.")
        return

    click.echo(f"{'ID':<5} {'Name':<24} {'Active':<8} {'Users':<6} Permissions")
    for role in roles:
        names = sorted(rp.permission.name for rp in role.role_permissions if rp.permission)
        active = "Yes" if role.is_active else "No"
        click.echo(f"{role.id:<5} {role.name:<24} {active:<8} {len(role.users):<6} {', '.join(names) or '-'}")


@click.group('cash')
def cash_group():
    """Cash session inspection commands."""


@cash_group.command('sessions')
@click.option('--restaurant-id', type=int, help='Filter by restaurant id')
@click.option('--state', type=click.Choice(['open', 'closed']), help='Filter by state')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_cash_sessions_cli(restaurant_id, state, limit):
    filters = {}
    if restaurant_id:
        filters["restaurant_id"] = restaurant_id
    if state:
        filters["state"] = state

    sessions = _store().find(CashSession, filters, order_by="opened_at", descending=True, limit=limit)
    if not sessions:
        click.echo("No cash sessions found.")
        return

    click.echo(f"{'ID':<6} {'Rest.':<6} {'State':<8} {'Opened':<22} {'Opening':>12} {'Delta':>10} Result")
    for s in sessions:
        delta = f"{s.delta_total:.2f}" if s.delta_total is not None else "-"
        click.echo(
            f"{s.id:<6} {s.restaurant_id:<6} {s.state:<8} {to_utc_z(s.opened_at):<22} "
            f"{s.opening_balance:>12.2f} {delta:>10} {s.reconciliation_state or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(roles_group)
    app.cli.add_command(cash_group)
