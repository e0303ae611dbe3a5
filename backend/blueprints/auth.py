"""Authentication blueprint: user registration, token login and route guards."""
from functools import wraps
from flask import Blueprint, request, jsonify, g
import logging
import secrets
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash, check_password_hash
from ..models import db, AppConfig, User
from ..services import role_service, user_role_service
from ..utils import get_json_body
from shared.enums import RoleName
from shared.errors import AuthorizationError, DuplicateError, InternalError
from shared.validation import Validator, ValidationError

bp = Blueprint('auth', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

TOKEN_CATEGORY = 'user_token'
PUBLIC_PATHS = ('/api/auth/login', '/api/auth/register')


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return None


def current_user_id():
    user = getattr(g, 'user', None)
    return user.id if user else None


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(g, 'user', None) is None:
            return jsonify({'error': 'Authentication required'}), 401
        return view(*args, **kwargs)
    return wrapped


def roles_required(*role_names):
    """Require any of the given roles. ``super_admin`` always passes."""
    names = [RoleName.SUPER_ADMIN] + list(role_names)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if getattr(g, 'user', None) is None:
                return jsonify({'error': 'Authentication required'}), 401
            if not user_role_service.user_has_any_role(g.user.id, names):
                raise AuthorizationError('Insufficient role for this operation')
            return view(*args, **kwargs)
        return wrapped
    return decorator


def serialize_user(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'is_active': user.is_active,
        'roles': sorted(user_role_service.get_user_role_names(user.id)),
    }


@bp.route('/auth/register', methods=['POST'])
def register():
    """Register a new user. The first user becomes super admin when roles are seeded."""
    data = get_json_body()
    username = Validator.validate_string_length(data.get('username', ''), 'username', 1, 80)
    email = Validator.validate_email(Validator.validate_string_length(data.get('email', ''), 'email', 1, 120))
    password = data.get('password')
    if not password or not isinstance(password, str):
        raise ValidationError('Username, email, and password are required')

    if User.query.filter((User.username == username) | (User.email == email)).first():
        raise DuplicateError('User already exists')

    first_user = User.query.count() == 0
    user = User(
        username=username,
        email=email,
        password_hash=generate_password_hash(password),
        first_name=Validator.sanitize_html(data.get('first_name') or ''),
        last_name=Validator.sanitize_html(data.get('last_name') or ''),
    )
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to register user {username}: {e}", exc_info=True)
        raise InternalError('Failed to register user')

    if first_user:
        super_admin = role_service.get_role_by_name(RoleName.SUPER_ADMIN.value)
        if super_admin is not None:
            user_role_service.assign_role_to_user(user.id, super_admin.id)
            logger.info(f"First user {username} granted super_admin")

    logger.info(f"Registered user {user.id} - {username}")
    return jsonify({
        'message': 'User registered successfully',
        'user': serialize_user(user)
    }), 201


@bp.route('/auth/login', methods=['POST'])
def login():
    """Login user and return token."""
    data = get_json_body()
    username = data.get('username')
    password = data.get('password')

    user = User.query.filter_by(username=username).first() if username else None
    if not user or not password or not check_password_hash(user.password_hash, password):
        return jsonify({'error': 'Invalid username or password'}), 401
    if not user.is_active:
        return jsonify({'error': 'Account is disabled'}), 401

    token = secrets.token_urlsafe(32)
    config_entry = AppConfig(
        key=f'token_{token}',
        value=str(user.id),
        description=f'Token for user {user.username}',
        category=TOKEN_CATEGORY
    )
    try:
        db.session.add(config_entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to store token for user {user.id}: {e}", exc_info=True)
        raise InternalError('Failed to log in')

    return jsonify({'token': token, 'user': serialize_user(user)})


@bp.route('/auth/logout', methods=['POST'])
def logout():
    """Logout user by invalidating token."""
    token = _bearer_token()
    if not token:
        raise ValidationError('Token required')

    config_entry = AppConfig.query.filter_by(key=f'token_{token}', category=TOKEN_CATEGORY).first()
    if config_entry is None:
        raise ValidationError('Invalid token')
    db.session.delete(config_entry)
    db.session.commit()
    return jsonify({'message': 'Logged out successfully'})


@bp.route('/auth/me', methods=['GET'])
@login_required
def me():
    return jsonify(serialize_user(g.user))


def init_auth(app):
    """Resolve the bearer token of every API request into ``g.user``."""
    @app.before_request
    def check_auth():
        g.user = None
        if not request.path.startswith('/api') or request.path.startswith(PUBLIC_PATHS):
            return

        token = _bearer_token()
        if token:
            config_entry = AppConfig.query.filter_by(key=f'token_{token}', category=TOKEN_CATEGORY).first()
            if config_entry:
                user = db.session.get(User, int(config_entry.value))
                if user is not None and user.is_active:
                    g.user = user
                    return

        return jsonify({'error': 'Authentication required'}), 401
