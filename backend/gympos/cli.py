# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/gympos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Gym Co"] [--branch "Main Branch"]
#   Idempotent bootstrap: default company, branch, roles, permissions and users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --name "Front Desk" --email desk@gympos.local --password "Password123!" --role staff
#   Create a user in the default branch (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory reconcile
#   Report items whose cached quantity differs from the ledger.
# - python -m flask inventory reconcile --fix
#   Same, then overwrite each drifted cache with the ledger value.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Company, User
from .permissions import DEFAULT_ROLES
from .services import permission_service
from .services.auth_service import PasswordValidationError, create_default_roles, create_user
from .services.stock_ledger_service import StockLedgerError, find_quantity_drift, resync_cached_quantity


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Company', help='Company name')
@click.option('--branch', 'branch_name', default='Main Branch', help='Branch name')
@with_appcontext
def init_system(company_name, branch_name):
    """
    Initialize the system: company, branch, roles, permissions and users.

    Creates admin@gympos.local, manager@gympos.local and staff@gympos.local,
    all with password "Password123!". Change them in production.
    """
    click.echo("START Initializing GymPOS...")

    db.create_all()

    company = db.session.query(Company).first()
    if not company:
        company = Company(
            name=company_name,
            registration_number="REG-0001",
            vat_number="VAT-0001",
            address="Not set",
        )
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created default company: {company.name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    branch = db.session.query(Branch).filter_by(company_id=company.id).first()
    if not branch:
        branch = Branch(company_id=company.id, name=branch_name)
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created default branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    roles = create_default_roles()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    perm_count = permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions and assigned role defaults")

    for role_name, _ in DEFAULT_ROLES:
        email = f"{role_name}@gympos.local"
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        create_user(
            name=role_name.capitalize(),
            email=email,
            password=DEFAULT_PASSWORD,
            role_name=role_name,
            branch_ids=[branch.id],
        )
        click.echo(f"PASS Created user: {email} with role '{role_name}'")

    click.echo("DONE GymPOS initialized. Default password: Password123! (CHANGE IN PRODUCTION)")


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
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([name for name, _ in DEFAULT_ROLES]), prompt=True, help='Role')
@click.option('--branch-id', type=int, help='Branch ID (uses the first branch if not specified)')
@with_appcontext
def create_user_cli(name, email, password, role, branch_id):
    """Create a new user with a role and one branch membership."""
    if branch_id is None:
        branch = db.session.query(Branch).order_by(Branch.id.asc()).first()
        if not branch:
            raise click.ClickException("No branch found. Run 'python -m flask system init' first.")
        branch_id = branch.id

    try:
        user = create_user(name=name, email=email, password=password, role_name=role, branch_ids=[branch_id])
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} with role '{role}' in branch {branch_id}")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection and repair."""


@inventory_group.command('reconcile')
@click.option('--branch-id', type=int, help='Only items visible to this branch')
@click.option('--fix', is_flag=True, help='Overwrite drifted caches with the ledger value')
@with_appcontext
def reconcile_inventory(branch_id, fix):
    """Compare each item's cached quantity with its ledger sum."""
    drift = find_quantity_drift(branch_id=branch_id)
    if not drift:
        click.echo("PASS All item quantities match the ledger")
        return

    for row in drift:
        click.echo(
            f"DRIFT item {row['itemId']} ({row['sku']}): cached {row['quantity']}, "
            f"ledger {row['ledgerQuantity']} (drift {row['drift']:+d})"
        )

    if not fix:
        raise click.ClickException(f"{len(drift)} item(s) out of sync; rerun with --fix to repair")

    for row in drift:
        try:
            quantity = resync_cached_quantity(int(row["itemId"]))
        except StockLedgerError as e:
            click.echo(f"FAIL item {row['itemId']}: {e}")
            continue
        click.echo(f"PASS item {row['itemId']} set to {quantity}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
