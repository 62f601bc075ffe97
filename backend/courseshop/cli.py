# Overview: Flask CLI command groups for bootstrap, catalog seeding, and coupon inspection.

# backend/courseshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer "flask db upgrade" in production.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email buyer@example.com --password "Password123!" --name "Buyer"
# - python -m flask users promote-admin --email admin@example.com
#
# Catalog:
# - python -m flask courses create --title "Intro to SQL" --price-cents 4900
#   Omit --price-cents for a free course.
#
# Coupons:
# - python -m flask coupons create --code SAVE10 --percent 10 --max-uses 100
# - python -m flask coupons create --code FIVEOFF --amount-cents 500
# - python -m flask coupons list [--active-only]

import click
from flask.cli import with_appcontext

from .errors import ShopError
from .extensions import db
from .models import Course
from .models.auth import ROLE_ADMIN
from .services import auth_service, coupon_service
from .services.auth_service import PasswordValidationError
from .validation import parse_coupon_payload


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@click.option('--admin', 'make_admin', is_flag=True, help='Create with the ADMIN role')
@with_appcontext
def create_user_cli(email, password, name, make_admin):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        kwargs = {"role": ROLE_ADMIN} if make_admin else {}
        user = auth_service.create_user(email, password, name=name, **kwargs)
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ShopError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('promote-admin')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def promote_admin_cli(email):
    """Grant the ADMIN role to an existing user."""
    try:
        user = auth_service.set_role(email, ROLE_ADMIN)
        click.echo(f"PASS {user.email} is now {user.role}")
    except ShopError as e:
        click.echo(f"FAIL {str(e)}")


@click.group('courses')
def courses_group():
    """Catalog seeding commands."""


@courses_group.command('create')
@click.option('--title', prompt=True, help='Course title')
@click.option('--price-cents', type=click.IntRange(min=0), default=None, help='Price in cents (omit for free)')
@click.option('--unpublished', is_flag=True, help='Create without publishing')
@with_appcontext
def create_course_cli(title, price_cents, unpublished):
    course = Course(title=title.strip(), price_cents=price_cents, is_published=not unpublished)
    db.session.add(course)
    db.session.commit()
    price = "free" if price_cents is None else f"{price_cents} cents"
    click.echo(f"PASS Created course {course.id}: {course.title} ({price})")


@click.group('coupons')
def coupons_group():
    """Coupon inspection and bootstrap commands."""


@coupons_group.command('create')
@click.option('--code', prompt=True, help='Coupon code (stored uppercase)')
@click.option('--percent', default=None, help='Percent off, e.g. 12.5')
@click.option('--amount-cents', type=int, default=None, help='Fixed amount off in cents')
@click.option('--max-uses', type=int, default=None, help='Usage cap (omit for unlimited)')
@click.option('--expires-at', default=None, help='ISO-8601 expiry, e.g. 2027-01-01T00:00:00Z')
@with_appcontext
def create_coupon_cli(code, percent, amount_cents, max_uses, expires_at):
    try:
        fields = parse_coupon_payload({
            "code": code,
            "discount_percent": percent,
            "discount_amount_cents": amount_cents,
            "max_uses": max_uses,
            "expires_at": expires_at,
        })
        coupon = coupon_service.create_coupon(fields)
        click.echo(f"PASS Created coupon {coupon.code} (ID: {coupon.id})")
    except ShopError as e:
        click.echo(f"FAIL Failed to create coupon: {str(e)}")


@coupons_group.command('list')
@click.option('--active-only', is_flag=True, help='Hide inactive coupons')
@with_appcontext
def list_coupons_cli(active_only):
    coupons = coupon_service.list_coupons(active_only)

    if not coupons:
        click.echo("No coupons found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Code':<16} {'Discount':<14} {'Uses':<12} {'Active':<8} {'Expires'}")
    click.echo("="*90)

    for c in coupons:
        if c["discount_percent"] is not None:
            discount = f"{c['discount_percent']}%"
        else:
            discount = f"{c['discount_amount_cents']}c"
        cap = c["max_uses"] if c["max_uses"] is not None else "inf"
        uses = f"{c['current_uses']}/{cap}"
        active_str = "Yes" if c["is_active"] else "No"
        click.echo(f"{c['id']:<5} {c['code']:<16} {discount:<14} {uses:<12} {active_str:<8} {c['expires_at'] or '-'}")

    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(courses_group)
    app.cli.add_command(coupons_group)
