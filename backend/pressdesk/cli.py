# Overview: Flask CLI command groups for bootstrap, operator sessions, and signing keys.

# backend/pressdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "pressdesk:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store "Main Street"] [--admin-name "Owner"]
#   Idempotent bootstrap: default pipeline columns, service categories, a store, an admin profile.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Profiles:
# - python -m flask profiles list
# - python -m flask profiles create --name "Dana" --email dana@shop.local --role STAFF
#
# Sessions (stand-in for the identity provider):
# - python -m flask sessions issue <profile_id>
#   Print a bearer token for a profile.
# - python -m flask sessions revoke <profile_id>
#   Revoke every live session of a profile.
#
# Signing keys:
# - python -m flask signing generate-keys [--out qz-keys] [--days 3650]
#   Write qz-private-key.pem (goes into QZ_PRIVATE_KEY) and qz-digital-certificate.txt
#   (served to consoles and imported into the print agent).

from decimal import Decimal
from pathlib import Path

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import KanbanColumn, Profile, ServiceCategory, Store
from .models.auth import ROLES
from .services import session_service, signing_service
from .services.session_service import SessionError


DEFAULT_COLUMNS = [
    ("RECEIVED", "Received", "bg-slate-400"),
    ("CLEANING", "Cleaning", "bg-blue-500"),
    ("READY", "Ready", "bg-emerald-500"),
    ("COMPLETED", "Completed", "bg-indigo-500"),
    ("HOLD", "On Hold", "bg-amber-500"),
]

DEFAULT_CATEGORIES = [
    ("Shirt", "Launder", "8.50"),
    ("Pants", "Dry Clean", "12.00"),
    ("Suit 2pc", "Dry Clean", "24.00"),
    ("Dress", "Dry Clean", "18.00"),
    ("Hem", "Alteration", "15.00"),
    ("Wedding Gown", "Specialty", "150.00"),
]


def seed_defaults(*, store_name: str, admin_name: str, admin_email: str | None) -> dict:
    """Create the default pipeline, catalog, store and admin when missing. Returns counts created."""
    created = {"columns": 0, "categories": 0, "stores": 0, "profiles": 0}

    if db.session.query(KanbanColumn).count() == 0:
        for position, (status, label, color) in enumerate(DEFAULT_COLUMNS):
            db.session.add(KanbanColumn(status=status, label=label, color=color, position=position))
            created["columns"] += 1

    if db.session.query(ServiceCategory).count() == 0:
        for position, (name, service_type, price) in enumerate(DEFAULT_CATEGORIES):
            db.session.add(ServiceCategory(name=name, service_type=service_type, base_price=Decimal(price), position=position))
            created["categories"] += 1

    if db.session.query(Store).count() == 0:
        db.session.add(Store(name=store_name))
        created["stores"] += 1

    if db.session.query(Profile).filter_by(role="ADMIN").count() == 0:
        db.session.add(Profile(name=admin_name, email=admin_email, role="ADMIN"))
        created["profiles"] += 1

    db.session.commit()
    return created


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Store', help='Name of the first store')
@click.option('--admin-name', default='Administrator', help='Name of the first admin profile')
@click.option('--admin-email', default=None, help='Email of the first admin profile')
@with_appcontext
def init_system(store_name, admin_name, admin_email):
    """Create tables and seed defaults (safe to run more than once)."""
    click.echo("START Initializing PressDesk...")
    db.create_all()
    created = seed_defaults(store_name=store_name, admin_name=admin_name, admin_email=admin_email)
    for kind, count in created.items():
        click.echo(f"PASS {kind}: {count} created")
    click.echo("DONE PressDesk initialized")


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
    click.echo("BUILD  Recreating schema...")
    db.create_all()
    click.echo("DONE Database reset")


@click.group('profiles')
def profiles_group():
    """Staff profile inspection/bootstrap."""


@profiles_group.command('list')
@with_appcontext
def list_profiles():
    profiles = db.session.query(Profile).order_by(Profile.name).all()
    if not profiles:
        click.echo("No profiles found")
        return
    for p in profiles:
        state = "active" if p.is_active else "inactive"
        click.echo(f"{p.id}  {p.name:<24} {p.role:<8} {p.email or '-'} ({state})")


@profiles_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', default=None)
@click.option('--role', type=click.Choice(ROLES), default='STAFF', show_default=True)
@with_appcontext
def create_profile(name, email, role):
    profile = Profile(name=name.strip(), email=email, role=role)
    db.session.add(profile)
    db.session.commit()
    click.echo(f"PASS Created profile {profile.name} ({profile.id}) with role {role}")


@click.group('sessions')
def sessions_group():
    """Operator session issuance and revocation."""


@sessions_group.command('issue')
@click.argument('profile_id')
@with_appcontext
def issue_session(profile_id):
    try:
        session, token = session_service.create_session(profile_id)
    except SessionError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Session {session.id} expires {session.expires_at:%Y-%m-%d %H:%M} UTC")
    click.echo(token)


@sessions_group.command('revoke')
@click.argument('profile_id')
@with_appcontext
def revoke_sessions(profile_id):
    count = session_service.revoke_profile_sessions(profile_id, reason="Revoked from CLI")
    click.echo(f"PASS Revoked {count} session(s)")


@click.group('signing')
def signing_group():
    """Signing authority key material."""


@signing_group.command('generate-keys')
@click.option('--out', 'out_dir', default='qz-keys', show_default=True, type=click.Path(file_okay=False))
@click.option('--days', default=3650, show_default=True, help='Certificate validity')
@click.option('--common-name', default='localhost', show_default=True)
def generate_keys(out_dir, days, common_name):
    """Generate an RSA 2048 key (PKCS#8) and a self-signed X.509 certificate."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    key_path = out / "qz-private-key.pem"
    cert_path = out / "qz-digital-certificate.txt"
    if key_path.exists():
        click.confirm(f"WARN {key_path} exists. Overwrite?", abort=True)

    key_pem, cert_pem = signing_service.generate_signing_material(common_name=common_name, days=days)
    key_path.write_text(key_pem, encoding="utf-8")
    key_path.chmod(0o600)
    cert_path.write_text(cert_pem, encoding="utf-8")

    click.echo(f"PASS Keys generated in: {out}")
    click.echo(f"1. '{key_path.name}' -> set as QZ_PRIVATE_KEY on the gateway server")
    click.echo(f"2. '{cert_path.name}' -> import into the print agent site manager")
    click.echo(f"   and point QZ_CERTIFICATE_PATH at it so consoles can fetch it")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(profiles_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(signing_group)
