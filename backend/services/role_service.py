"""Role-permission store.

Roles are never hard-deleted because user_roles rows keep referencing them
for audit; deactivation removes them from every permission evaluation.
"""
import json
import logging
from pathlib import Path
from sqlalchemy.exc import SQLAlchemyError
from ..models import db, Role
from shared.errors import NotFoundError, DuplicateError, InternalError
from shared.schemas import RoleCreate, RoleUpdate, validate_schema

logger = logging.getLogger(__name__)

DEFAULT_ROLES_FILE = Path(__file__).resolve().parent.parent / 'data' / 'default_roles.json'


def get_role(role_id):
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError(f'Role {role_id} not found')
    return role


def get_role_by_name(name):
    return Role.query.filter_by(name=name).first()


def list_roles(include_inactive=False):
    query = Role.query
    if not include_inactive:
        query = query.filter(Role.is_active.is_(True))
    return query.order_by(Role.name).all()


def create_role(data):
    """Create a role from raw data, validating its permission document.

    Raises:
        ValidationError: malformed name or permission document
        DuplicateError: a role with the same name exists (active or not)
    """
    role_data = validate_schema(RoleCreate, data)
    if get_role_by_name(role_data.name) is not None:
        raise DuplicateError(f"Role '{role_data.name}' already exists")

    role = Role(
        name=role_data.name,
        description=role_data.description,
        permissions=role_data.permissions.model_dump(mode='json'),
        is_active=True,
    )
    try:
        db.session.add(role)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create role {role_data.name}: {e}", exc_info=True)
        raise InternalError('Failed to create role')

    logger.info(f"Created role: {role.id} - {role.name}")
    return role


def update_role(role_id, data):
    """Update description, permission document or active flag of a role."""
    role = get_role(role_id)
    changes = validate_schema(RoleUpdate, data)

    if changes.description is not None:
        role.description = changes.description
    if changes.permissions is not None:
        role.permissions = changes.permissions.model_dump(mode='json')
    if changes.is_active is not None:
        role.is_active = changes.is_active

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to update role {role_id}: {e}", exc_info=True)
        raise InternalError('Failed to update role')

    logger.info(f"Updated role: {role.id} - {role.name}")
    return role


def deactivate_role(role_id):
    return update_role(role_id, {'is_active': False})


def load_default_roles(path=None):
    """Read the bundled default role definitions."""
    path = Path(path) if path else DEFAULT_ROLES_FILE
    with open(path, 'r') as f:
        return json.load(f)


def seed_default_roles(path=None):
    """Create any default role that does not exist yet.

    Existing roles are left untouched so local policy edits survive reseeding.

    Returns:
        list: names of the roles created
    """
    created = []
    for role_data in load_default_roles(path):
        if get_role_by_name(role_data['name']) is not None:
            logger.debug(f"Role {role_data['name']} already exists, skipping")
            continue
        create_role(role_data)
        created.append(role_data['name'])
    logger.info(f"Seeded {len(created)} default roles")
    return created
