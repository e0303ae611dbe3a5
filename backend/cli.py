import click
import logging
from flask import current_app
from flask.cli import with_appcontext
from .models import db, User
from .services import notification_service, role_service, user_role_service
from shared.errors import WorkflowError

logger = logging.getLogger(__name__)


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create the tables and seed the default roles."""
    logger.info("Starting database initialization")
    db.create_all()
    logger.info("Database tables created successfully")

    created = role_service.seed_default_roles(current_app.config.get('DEFAULT_ROLES_FILE'))
    if created:
        click.echo(f"Seeded roles: {', '.join(created)}")
    logger.info("Database initialization completed successfully")
    click.echo('Initialized the database.')


@click.command('seed-roles')
@click.option('--file', 'path', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with role definitions (defaults to the bundled roles)')
@with_appcontext
def seed_roles_command(path):
    """Create any missing default role."""
    try:
        created = role_service.seed_default_roles(path or current_app.config.get('DEFAULT_ROLES_FILE'))
    except WorkflowError as e:
        raise click.ClickException(e.message)
    if created:
        click.echo(f"Created roles: {', '.join(created)}")
    else:
        click.echo('All default roles already exist')


@click.command('assign-role')
@click.argument('username')
@click.argument('role_name')
@with_appcontext
def assign_role_command(username, role_name):
    """Grant ROLE_NAME to USERNAME."""
    user = User.query.filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User '{username}' not found")
    role = role_service.get_role_by_name(role_name)
    if role is None:
        raise click.ClickException(f"Role '{role_name}' not found")
    try:
        user_role_service.assign_role_to_user(user.id, role.id)
    except WorkflowError as e:
        raise click.ClickException(e.message)
    click.echo(f"Assigned role '{role_name}' to '{username}'")


@click.command('prune-notifications')
@click.option('--days', type=click.IntRange(min=0), default=None,
              help='Retention window in days (defaults to NOTIFICATION_RETENTION_DAYS)')
@with_appcontext
def prune_notifications_command(days):
    """Delete notifications older than the retention window."""
    removed = notification_service.prune_expired(days)
    click.echo(f"Removed {removed} notifications")
