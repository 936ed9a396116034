# Overview: Flask CLI command groups for bootstrap and user management.

# backend/phoneshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates all tables and the default admin (09123456789 / password123).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users create --name "Ko Ko" --phone 09987654321 --password "secret1" --role SELLER
#   Create a user (prompts if options are omitted).
#
# Schema migrations (Flask-Migrate):
# - python -m flask db upgrade

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, USER_ROLES
from .services import user_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and seed the default admin account.

    SECURITY: Change the default admin password immediately in production!
    """
    click.echo("START Initializing phone shop backend...")

    db.create_all()
    click.echo("PASS Database tables ready")

    user, created = user_service.ensure_admin()
    if created:
        click.echo(f"PASS Created admin user: {user.phone} / {user_service.DEFAULT_ADMIN_PASSWORD}")
    else:
        click.echo(f"PASS Admin user already exists: {user.phone}")

    click.echo("DONE System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm the destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)

    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset (all data deleted)")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        click.echo(f"{user.id:>4}  {user.phone:<14} {user.role:<7} {user.status:<10} {user.name}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--phone', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(USER_ROLES, case_sensitive=False), default='SELLER', show_default=True)
@with_appcontext
def create_user(name, phone, password, role):
    try:
        user = user_service.create_user({
            "name": name,
            "phone": phone,
            "password": password,
            "role": role.upper(),
        })
    except ValidationError as e:
        details = "; ".join(err["message"] for err in e.errors) if e.errors else str(e)
        click.echo(f"FAIL {details}")
        raise SystemExit(1)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user {user.name} ({user.phone}) with role {user.role}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
