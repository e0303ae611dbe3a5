"""User-project assignment store.

Surveys carry their project as a free-text name, so every project-scoped rule
starts by resolving that name to a project row with ``resolve_project_id``.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from ..models import db, User, Project, UserProject, UserRole, Role, now
from shared.errors import NotFoundError, DuplicateError, ValidationError, InternalError
from shared.schemas import PermissionDocument, validate_schema

logger = logging.getLogger(__name__)


def _active_binding(user_id, project_id):
    return UserProject.query.filter_by(user_id=user_id, project_id=project_id, is_active=True).first()


def _require_binding(user_id, project_id):
    binding = _active_binding(user_id, project_id)
    if binding is None:
        raise NotFoundError(f'User {user_id} is not assigned to project {project_id}')
    return binding


def _validated_permissions(permissions):
    if permissions is None:
        return None
    if isinstance(permissions, PermissionDocument):
        return permissions.model_dump(mode='json')
    return validate_schema(PermissionDocument, permissions).model_dump(mode='json')


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise InternalError(f'Failed to {action}')


def assign_user_to_project(user_id, project_id, assigned_by=None, role_in_project=None, permissions=None):
    """Bind a user to a project.

    Raises:
        NotFoundError: user or project does not exist
        ValidationError: project is inactive or the override document is malformed
        DuplicateError: user is already assigned to this project
    """
    if db.session.get(User, user_id) is None:
        raise NotFoundError(f'User {user_id} not found')
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f'Project {project_id} not found')
    if not project.is_active:
        raise ValidationError(f"Project '{project.name}' is not active")
    if _active_binding(user_id, project_id) is not None:
        raise DuplicateError(f"User {user_id} is already assigned to project '{project.name}'")

    binding = UserProject(
        user_id=user_id,
        project_id=project_id,
        assigned_by=assigned_by,
        assigned_at=now(),
        role_in_project=role_in_project,
        permissions=_validated_permissions(permissions),
        is_active=True,
    )
    db.session.add(binding)
    _commit('assign user to project')

    logger.info(f"Assigned user {user_id} to project '{project.name}' (by {assigned_by})")
    return binding


def remove_user_from_project(user_id, project_id):
    binding = _require_binding(user_id, project_id)
    binding.is_active = False
    _commit('remove user from project')
    logger.info(f"Removed user {user_id} from project {project_id}")
    return binding


def update_user_project_role(user_id, project_id, role_in_project):
    binding = _require_binding(user_id, project_id)
    binding.role_in_project = role_in_project
    _commit('update project role')
    return binding


def update_user_project_permissions(user_id, project_id, permissions):
    """Set or clear (``None``) the project-scoped permission override."""
    binding = _require_binding(user_id, project_id)
    binding.permissions = _validated_permissions(permissions)
    _commit('update project permissions')
    return binding


def get_user_projects(user_id):
    bindings = (
        UserProject.query
        .join(Project, UserProject.project_id == Project.id)
        .filter(
            UserProject.user_id == user_id,
            UserProject.is_active.is_(True),
            Project.is_active.is_(True),
        )
        .all()
    )
    return [{
        'id': b.project.id,
        'name': b.project.name,
        'code': b.project.code,
        'description': b.project.description,
        'client': b.project.client,
        'role_in_project': b.role_in_project,
        'permissions': b.permissions,
        'assigned_at': b.assigned_at.isoformat() if b.assigned_at else None,
        'assigned_by': b.assigned_by,
    } for b in bindings]


def get_project_users(project_id):
    bindings = (
        UserProject.query
        .join(User, UserProject.user_id == User.id)
        .filter(UserProject.project_id == project_id, UserProject.is_active.is_(True))
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
        'role_in_project': b.role_in_project,
        'permissions': b.permissions,
        'assigned_at': b.assigned_at.isoformat() if b.assigned_at else None,
        'assigned_by': b.assigned_by,
    } for b in bindings]


def get_membership(user_id, project_id):
    """Return the active binding joined to an active project, or None."""
    return (
        UserProject.query
        .join(Project, UserProject.project_id == Project.id)
        .filter(
            UserProject.user_id == user_id,
            UserProject.project_id == project_id,
            UserProject.is_active.is_(True),
            Project.is_active.is_(True),
        )
        .first()
    )


def user_is_assigned_to_project(user_id, project_id):
    return get_membership(user_id, project_id) is not None


def resolve_project_id(project_name):
    """Resolve a survey's project name to a project id by exact match.

    Returns None when no project row carries that name; callers treat that
    as an empty scope rather than an error.
    """
    if not project_name:
        return None
    project = Project.query.filter(Project.name == project_name).order_by(Project.id).first()
    return project.id if project else None


def project_members_with_roles(project_id, role_names):
    """Ids of active members of a project holding any of the given active roles."""
    if project_id is None or not role_names:
        return set()
    names = [getattr(n, 'value', n) for n in role_names]
    rows = (
        db.session.query(UserProject.user_id)
        .join(Project, UserProject.project_id == Project.id)
        .join(UserRole, UserRole.user_id == UserProject.user_id)
        .join(Role, UserRole.role_id == Role.id)
        .filter(
            UserProject.project_id == project_id,
            UserProject.is_active.is_(True),
            Project.is_active.is_(True),
            UserRole.is_active.is_(True),
            Role.is_active.is_(True),
            Role.name.in_(names),
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}
