"""Users blueprint: role bindings, project memberships and permission summaries."""
from flask import Blueprint, jsonify, g
from ..models import User
from ..base.crud_base import CRUDBase, pagination_args
from ..services import permission_service, user_project_service, user_role_service
from ..utils import get_json_body
from .auth import login_required, roles_required, serialize_user
from shared.enums import RoleName
from shared.errors import AuthorizationError, ValidationError
from shared.schemas import UserProjectAssign, UserRoleAssign, validate_schema

bp = Blueprint('users', __name__, url_prefix='/api')

ADMIN_ROLES = (RoleName.ADMIN,)


class UserCRUD(CRUDBase):
    """Listing and deactivation of users; accounts are created through /auth/register."""

    def __init__(self):
        super().__init__(User, logger_name='users')

    def serialize(self, user):
        return serialize_user(user)


user_crud = UserCRUD()


def _require_self_or_admin(user_id):
    if g.user.id == user_id:
        return
    if not user_role_service.user_has_any_role(g.user.id, (RoleName.SUPER_ADMIN,) + ADMIN_ROLES):
        raise AuthorizationError('Insufficient permissions to view another user')


def _require_admin_for_override():
    """Membership permission overrides replace role grants, so only admins may write them."""
    if not user_role_service.user_has_any_role(g.user.id, (RoleName.SUPER_ADMIN,) + ADMIN_ROLES):
        raise AuthorizationError('Only administrators may set project permission overrides')


@bp.route('/users', methods=['GET'])
@roles_required(*ADMIN_ROLES, RoleName.COORDINATOR)
def list_users():
    page, per_page = pagination_args()
    return user_crud.get_list(page=page, per_page=per_page)


@bp.route('/users/<int:user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    _require_self_or_admin(user_id)
    return user_crud.get_detail(user_id)


@bp.route('/users/<int:user_id>', methods=['DELETE'])
@roles_required(*ADMIN_ROLES)
def deactivate_user(user_id):
    return user_crud.delete(user_id)


@bp.route('/users/<int:user_id>/permissions', methods=['GET'])
@login_required
def user_permissions(user_id):
    _require_self_or_admin(user_id)
    user_crud.get_or_404(user_id)
    return jsonify(permission_service.get_user_permissions(user_id).model_dump(mode='json'))


@bp.route('/users/me/permissions', methods=['GET'])
@login_required
def my_permissions():
    return jsonify(permission_service.get_user_permissions(g.user.id).model_dump(mode='json'))


# Role bindings

@bp.route('/users/<int:user_id>/roles', methods=['GET'])
@login_required
def user_roles(user_id):
    _require_self_or_admin(user_id)
    user_crud.get_or_404(user_id)
    return jsonify({'roles': user_role_service.get_user_roles(user_id)})


@bp.route('/users/<int:user_id>/roles', methods=['POST'])
@roles_required(*ADMIN_ROLES)
def assign_role(user_id):
    data = validate_schema(UserRoleAssign, get_json_body())
    binding = user_role_service.assign_role_to_user(user_id, data.role_id, assigned_by=g.user.id)
    return jsonify({
        'message': 'Role assigned successfully',
        'user_id': binding.user_id,
        'role_id': binding.role_id,
        'assigned_at': binding.assigned_at.isoformat(),
    }), 201


@bp.route('/users/<int:user_id>/roles/<int:role_id>', methods=['DELETE'])
@roles_required(*ADMIN_ROLES)
def remove_role(user_id, role_id):
    user_role_service.remove_role_from_user(user_id, role_id)
    return jsonify({'message': 'Role removed successfully'})


# Project memberships

@bp.route('/users/<int:user_id>/projects', methods=['GET'])
@login_required
def user_projects(user_id):
    _require_self_or_admin(user_id)
    user_crud.get_or_404(user_id)
    return jsonify({'projects': user_project_service.get_user_projects(user_id)})


@bp.route('/users/<int:user_id>/projects', methods=['POST'])
@roles_required(*ADMIN_ROLES, RoleName.COORDINATOR)
def assign_project(user_id):
    data = validate_schema(UserProjectAssign, get_json_body())
    if data.permissions is not None:
        _require_admin_for_override()
    binding = user_project_service.assign_user_to_project(
        user_id,
        data.project_id,
        assigned_by=g.user.id,
        role_in_project=data.role_in_project,
        permissions=data.permissions,
    )
    return jsonify({
        'message': 'User assigned to project successfully',
        'user_id': binding.user_id,
        'project_id': binding.project_id,
        'role_in_project': binding.role_in_project,
        'permissions': binding.permissions,
    }), 201


@bp.route('/users/<int:user_id>/projects/<int:project_id>', methods=['PUT'])
@roles_required(*ADMIN_ROLES, RoleName.COORDINATOR)
def update_project_membership(user_id, project_id):
    data = get_json_body()
    if 'role_in_project' not in data and 'permissions' not in data:
        raise ValidationError('role_in_project or permissions is required')
    if 'permissions' in data:
        _require_admin_for_override()
    binding = None
    if 'role_in_project' in data:
        label = validate_schema(UserProjectAssign, {
            'project_id': project_id, 'role_in_project': data['role_in_project']
        }).role_in_project
        binding = user_project_service.update_user_project_role(user_id, project_id, label)
    if 'permissions' in data:
        binding = user_project_service.update_user_project_permissions(user_id, project_id, data['permissions'])
    return jsonify({
        'user_id': user_id,
        'project_id': project_id,
        'role_in_project': binding.role_in_project,
        'permissions': binding.permissions,
    })


@bp.route('/users/<int:user_id>/projects/<int:project_id>', methods=['DELETE'])
@roles_required(*ADMIN_ROLES, RoleName.COORDINATOR)
def remove_project(user_id, project_id):
    user_project_service.remove_user_from_project(user_id, project_id)
    return jsonify({'message': 'User removed from project successfully'})
