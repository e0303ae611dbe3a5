"""Logging configuration for the backend."""
import logging
import os
import json
from logging.handlers import RotatingFileHandler
from shared.models import now

HANDLER_NAMES = ('backend_file', 'backend_console')


class StructuredFormatter(logging.Formatter):
    """JSON lines formatter for the rotating log file."""

    def format(self, record):
        log_entry = {
            'timestamp': now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Callers attach context with extra={'extra_fields': {...}}
        extra_fields = getattr(record, 'extra_fields', None)
        if isinstance(extra_fields, dict):
            log_entry.update(extra_fields)

        return json.dumps(log_entry, default=str)


def default_logs_dir():
    return os.getenv('LOG_DIR') or os.path.join(os.path.dirname(__file__), '..', 'logs')


def setup_logging(logs_dir=None):
    """Configure the root logger with a JSON file handler and a console handler.

    ``LOG_LEVEL`` selects the level (default INFO) and ``LOG_DIR`` the
    directory for ``backend.log``.
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logs_dir = logs_dir or default_logs_dir()
    os.makedirs(logs_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    simple_formatter = logging.Formatter(
        '%(asctime)s %(levelname)-8s %(name)-20s %(message)s'
    )

    log_file = os.path.join(logs_dir, 'backend.log')
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(simple_formatter)

    # Repeated app creation (tests) replaces only the handlers installed here
    for handler in list(logger.handlers):
        if handler.get_name() in HANDLER_NAMES:
            logger.removeHandler(handler)
            handler.close()

    file_handler.set_name(HANDLER_NAMES[0])
    console_handler.set_name(HANDLER_NAMES[1])
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('alembic').setLevel(logging.INFO)

    logger.info("Logging initialized", extra={
        'extra_fields': {
            'log_level': log_level_str,
            'log_file': log_file,
            'structured_logging': True
        }
    })

    return logger
