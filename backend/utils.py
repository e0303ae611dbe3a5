"""Backend utility functions: JSON error responses and request parsing."""
from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from shared.errors import WorkflowError, InternalError, ValidationError
import logging


logger = logging.getLogger(__name__)


def api_error(message, status_code=400, log_level='warning', details=None, code=None):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (dict, optional): Additional details, returned to the client
        code (str, optional): Machine readable error code

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
    else:
        log_func(f"API Error ({status_code}): {message}")

    body = {'error': message}
    if code:
        body['code'] = code
    if details:
        body['details'] = details
    return jsonify(body), status_code


def handle_api_exception(e, operation="operation", status_code=500):
    """
    Handle unexpected exceptions in API endpoints.

    The exception is logged with its traceback; the client only sees the
    operation that failed.
    """
    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    return api_error(f"Failed to {operation}", status_code, 'error', code=InternalError.code)


def handle_workflow_error(e):
    """Render a WorkflowError raised by a service as a JSON response."""
    if isinstance(e, InternalError):
        logger.error(f"Internal error: {e.message}", exc_info=True)
        return jsonify({'error': 'Internal server error', 'code': e.code}), e.status_code
    log_level = 'info' if e.status_code == 404 else 'warning'
    return api_error(e.message, e.status_code, log_level, details=e.details, code=e.code)


def handle_http_exception(e):
    return api_error(e.description or e.name, e.code or 500, 'info')


def handle_unexpected_error(e):
    return handle_api_exception(e, 'process request')


def register_error_handlers(app):
    app.register_error_handler(WorkflowError, handle_workflow_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected_error)


def get_json_body():
    """Return the request JSON object or raise ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be valid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def parse_bool_arg(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def parse_int_arg(name, default=None, minimum=0):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')
    if parsed < minimum:
        raise ValidationError(f'{name} must be >= {minimum}')
    return parsed
