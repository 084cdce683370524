# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --org "Bar do Ze" --org-code BAR01 --admin-email owner@bar.example
#   Idempotent: creates the organization and an administrator principal.
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Bar" --code "ACME"
#
# Administrative role override list (checked before the canonical role record):
# - python -m flask role-overrides list
# - python -m flask role-overrides add --email ana@bar.example --role manager [--org-id 1] [--note "..."]
# - python -m flask role-overrides remove --email ana@bar.example [--org-id 1]
#
# Permission inspection:
# - python -m flask perms show --org-id 1 --email ana@bar.example
#   Print the principal's resolved role and effective matrix.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import AdminRoleOverride, AssignmentSource, Organization, Principal
from .permissions import ACTIONS, MODULES, ROLE_DEFINITIONS, TOP_PRIVILEGE_ROLE
from .services.auth_service import PasswordValidationError, hash_password
from .services.permission_service import effective_permissions_for
from .services.role_cache import write_mapping
from .services.role_resolver import resolve_principal
from .services.session_service import cleanup_expired_sessions


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--admin-email', default='admin@backoffice.local', help='Administrator email')
@click.option('--admin-password', default='Password123!', help='Administrator password')
@with_appcontext
def init_system(org_name, org_code, admin_email, admin_password):
    """
    Create the organization and its administrator principal.

    Safe to run repeatedly: existing rows are reused.

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing back office...")
    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    admin_email = admin_email.strip().lower()
    principal = db.session.query(Principal).filter_by(org_id=org.id, email=admin_email).first()
    if principal:
        click.echo(f"WARN  Principal '{admin_email}' already exists in org, skipping...")
    else:
        try:
            principal = Principal(
                org_id=org.id,
                email=admin_email,
                display_name="Administrator",
                password_hash=hash_password(admin_password),
            )
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
            return
        db.session.add(principal)
        db.session.commit()
        click.echo(f"PASS Created administrator: {admin_email} (ID: {principal.id})")

    write_mapping(org.id, principal.id, TOP_PRIVILEGE_ROLE, source=AssignmentSource.GRANT)
    click.echo(f"PASS Role '{TOP_PRIVILEGE_ROLE}' assigned to {admin_email}")

    click.echo("\n" + "="*60)
    click.echo("DONE Back office initialized")
    click.echo("="*60)
    click.echo(f"\nLogin: org_code={org.code} email={admin_email}")
    click.echo("SECURITY WARNING: change the administrator password in production!\n")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Principals'}")
    click.echo("="*70)
    for org in orgs:
        principal_count = db.session.query(Principal).filter_by(org_id=org.id).count()
        active_str = "yes" if org.is_active else "no"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {principal_count}")
    click.echo("="*70 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org(name, code):
    if db.session.query(Organization).filter_by(code=code).first():
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@click.group('role-overrides')
def role_overrides_group():
    """Operator-maintained email -> role list."""


@role_overrides_group.command('list')
@with_appcontext
def list_role_overrides():
    entries = db.session.query(AdminRoleOverride).order_by(AdminRoleOverride.email).all()
    if not entries:
        click.echo("No role overrides.")
        return
    for entry in entries:
        scope = f"org {entry.org_id}" if entry.org_id else "all orgs"
        note = f"  # {entry.note}" if entry.note else ""
        click.echo(f"{entry.email:<40} {entry.role:<24} {scope}{note}")


@role_overrides_group.command('add')
@click.option('--email', required=True, help='Principal email')
@click.option('--role', type=click.Choice(sorted(ROLE_DEFINITIONS)), required=True, help='Role to force')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@click.option('--note', default=None, help='Why this override exists')
@with_appcontext
def add_role_override(email, role, org_id, note):
    email = email.strip().lower()
    entry = db.session.query(AdminRoleOverride).filter_by(org_id=org_id, email=email).first()
    if entry:
        entry.role = role
        entry.note = note
        click.echo(f"PASS Updated override: {email} -> {role}")
    else:
        db.session.add(AdminRoleOverride(org_id=org_id, email=email, role=role, note=note))
        click.echo(f"PASS Added override: {email} -> {role}")
    db.session.commit()


@role_overrides_group.command('remove')
@click.option('--email', required=True, help='Principal email')
@click.option('--org-id', type=int, default=None, help='Organization the entry is limited to')
@with_appcontext
def remove_role_override(email, org_id):
    email = email.strip().lower()
    deleted = db.session.query(AdminRoleOverride).filter_by(org_id=org_id, email=email).delete()
    db.session.commit()
    if deleted:
        click.echo(f"PASS Removed override for {email}")
    else:
        click.echo(f"WARN  No override for {email}")


@click.group('perms')
def perms_group():
    """Permission inspection."""


@perms_group.command('show')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--email', required=True, help='Principal email')
@with_appcontext
def show_permissions(org_id, email):
    """Print role, access state and the effective matrix for a principal."""
    principal = db.session.query(Principal).filter_by(org_id=org_id, email=email.strip().lower()).first()
    if not principal:
        click.echo(f"FAIL Principal '{email}' not found in org {org_id}")
        return

    resolved = resolve_principal(principal, org_id)
    permissions = effective_permissions_for(resolved)

    click.echo(f"\n{resolved.email}  role={resolved.role} ({resolved.role_source})  state={resolved.access_state}")
    if permissions.degraded:
        click.echo("WARN  Overrides unavailable; showing deny-all")
    click.echo("="*80)
    click.echo(f"{'Module':<26}" + "".join(f"{action:<11}" for action in ACTIONS))
    click.echo("="*80)
    for module in MODULES:
        row = "".join(
            f"{('yes' if permissions.has_access(module, action) else '-'):<11}" for action in ACTIONS
        )
        click.echo(f"{module:<26}{row}")
    click.echo("="*80 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Periodic cleanup."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, help='Only delete sessions created before this many days ago')
@with_appcontext
def cleanup_sessions(older_than_days):
    deleted = cleanup_expired_sessions(timedelta(days=older_than_days))
    click.echo(f"PASS Deleted {deleted} expired or revoked sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(role_overrides_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
