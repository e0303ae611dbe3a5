"""Flask application factory for the TSSR workflow backend."""
from flask import Flask
import logging
from pathlib import Path
from .models import db
from .blueprints import auth, roles, users, projects, surveys, notifications
from .cli import init_db_command, seed_roles_command, assign_role_command, prune_notifications_command
from .logging_config import setup_logging
from .services.role_service import DEFAULT_ROLES_FILE
from .utils import register_error_handlers

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'NOTIFICATION_RETENTION_DAYS': 30,
    'NOTIFICATION_PAGE_SIZE': 50,
    'NOTIFICATION_MAX_PAGE_SIZE': 100,
    'DEFAULT_ROLES_FILE': str(DEFAULT_ROLES_FILE),
}


def create_app(test_config=None):
    """Flask application factory.

    Creates and configures a Flask application instance with:
    - SQLAlchemy database integration
    - Blueprint registration for API endpoints
    - JSON error handlers for service errors
    - CLI command registration
    - Logging configuration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    setup_logging()
    logger.info("Starting Flask application initialization")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(DEFAULT_CONFIG)

    if test_config is None:
        # Load the instance config, if it exists, when not testing
        if app.config.from_pyfile('config.py', silent=True):
            logger.info("Loaded configuration from instance/config.py")
        else:
            logger.debug("No instance config file found, using defaults")
    else:
        app.config.from_mapping(test_config)
        logger.info("Loaded test configuration")

    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    if 'SQLALCHEMY_DATABASE_URI' not in app.config:
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///tssr_workflow.db'
    logger.info(f"Using database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")

    db.init_app(app)

    for blueprint in (auth.bp, roles.bp, users.bp, projects.bp, surveys.bp, notifications.bp):
        app.register_blueprint(blueprint)
        logger.debug(f"Registered {blueprint.name} blueprint")

    auth.init_auth(app)
    register_error_handlers(app)

    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_roles_command)
    app.cli.add_command(assign_role_command)
    app.cli.add_command(prune_notifications_command)
    logger.info("CLI commands registered: init-db, seed-roles, assign-role, prune-notifications")

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
