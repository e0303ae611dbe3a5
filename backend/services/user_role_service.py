"""User-role assignment store.

Bindings are soft-deleted (``is_active = False``) so the table doubles as an
audit trail of who granted which role and when.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from ..models import db, User, Role, UserRole, now
from shared.errors import NotFoundError, DuplicateError, ValidationError, InternalError

logger = logging.getLogger(__name__)


def _get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f'User {user_id} not found')
    return user


def _active_binding(user_id, role_id):
    return UserRole.query.filter_by(user_id=user_id, role_id=role_id, is_active=True).first()


def assign_role_to_user(user_id, role_id, assigned_by=None):
    """Bind a role to a user.

    Raises:
        NotFoundError: user or role does not exist
        ValidationError: role is inactive
        DuplicateError: user already holds this role
    """
    _get_user(user_id)
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(f'Role {role_id} not found')
    if not role.is_active:
        raise ValidationError(f"Role '{role.name}' is not active")
    if _active_binding(user_id, role_id) is not None:
        raise DuplicateError(f"User {user_id} already has role '{role.name}'")

    binding = UserRole(
        user_id=user_id,
        role_id=role_id,
        assigned_by=assigned_by,
        assigned_at=now(),
        is_active=True,
    )
    try:
        db.session.add(binding)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to assign role {role_id} to user {user_id}: {e}", exc_info=True)
        raise InternalError('Failed to assign role')

    logger.info(f"Assigned role '{role.name}' to user {user_id} (by {assigned_by})")
    return binding


def remove_role_from_user(user_id, role_id):
    """Soft-delete the active binding between a user and a role."""
    binding = _active_binding(user_id, role_id)
    if binding is None:
        raise NotFoundError(f'User {user_id} does not have role {role_id}')

    binding.is_active = False
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to remove role {role_id} from user {user_id}: {e}", exc_info=True)
        raise InternalError('Failed to remove role')

    logger.info(f"Removed role {role_id} from user {user_id}")
    return binding


def get_active_roles(user_id):
    """Return the active Role rows held through active bindings.

    Read from the database on every call; nothing is cached, so a revoked
    binding stops granting permissions immediately.
    """
    return (
        Role.query
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            Role.is_active.is_(True),
        )
        .order_by(Role.name)
        .all()
    )


def get_user_roles(user_id):
    """List a user's active roles with their binding audit fields."""
    bindings = (
        UserRole.query
        .join(Role, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            Role.is_active.is_(True),
        )
        .all()
    )
    return [{
        'id': b.role.id,
        'name': b.role.name,
        'description': b.role.description,
        'permissions': b.role.permissions,
        'assigned_at': b.assigned_at.isoformat() if b.assigned_at else None,
        'assigned_by': b.assigned_by,
    } for b in bindings]


def get_role_users(role_id):
    """List users actively bound to a role."""
    bindings = (
        UserRole.query
        .join(User, UserRole.user_id == User.id)
        .filter(UserRole.role_id == role_id, UserRole.is_active.is_(True))
        .all()
    )
    return [{
        'user': {
            'id': b.user.id,
            'username': b.user.username,
            'email': b.user.email,
            'first_name': b.user.first_name,
            'last_name': b.user.last_name,
        },
        'assigned_at': b.assigned_at.isoformat() if b.assigned_at else None,
        'assigned_by': b.assigned_by,
    } for b in bindings]


def get_user_role_names(user_id):
    return {role.name for role in get_active_roles(user_id)}


def user_has_role(user_id, role_name):
    return user_has_any_role(user_id, [role_name])


def user_has_any_role(user_id, role_names):
    if not user_id or not role_names:
        return False
    names = [getattr(n, 'value', n) for n in role_names]
    match = (
        UserRole.query
        .join(Role, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            Role.is_active.is_(True),
            Role.name.in_(names),
        )
        .first()
    )
    return match is not None
