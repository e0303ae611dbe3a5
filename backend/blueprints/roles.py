"""Roles blueprint: role-permission store administration."""
from flask import Blueprint, jsonify, g
from ..services import role_service, user_role_service
from ..utils import get_json_body, parse_bool_arg
from .auth import login_required, roles_required
from shared.enums import RoleName
from shared.schemas import RoleResponse

bp = Blueprint('roles', __name__, url_prefix='/api')


def serialize_role(role):
    return RoleResponse.model_validate(role).model_dump(mode='json')


@bp.route('/roles', methods=['GET'])
@login_required
def list_roles():
    roles = role_service.list_roles(include_inactive=parse_bool_arg('include_inactive'))
    return jsonify({'roles': [serialize_role(r) for r in roles]})


@bp.route('/roles/<int:role_id>', methods=['GET'])
@login_required
def get_role(role_id):
    return jsonify(serialize_role(role_service.get_role(role_id)))


@bp.route('/roles', methods=['POST'])
@roles_required()
def create_role():
    role = role_service.create_role(get_json_body())
    return jsonify(serialize_role(role)), 201


@bp.route('/roles/<int:role_id>', methods=['PUT'])
@roles_required()
def update_role(role_id):
    role = role_service.update_role(role_id, get_json_body())
    return jsonify(serialize_role(role))


@bp.route('/roles/<int:role_id>', methods=['DELETE'])
@roles_required()
def deactivate_role(role_id):
    role = role_service.deactivate_role(role_id)
    return jsonify({'message': f"Role '{role.name}' deactivated", 'role': serialize_role(role)})


@bp.route('/roles/<int:role_id>/users', methods=['GET'])
@roles_required(RoleName.ADMIN)
def role_users(role_id):
    role_service.get_role(role_id)
    return jsonify({'users': user_role_service.get_role_users(role_id)})


@bp.route('/roles/seed', methods=['POST'])
@roles_required()
def seed_roles():
    created = role_service.seed_default_roles()
    return jsonify({'created': created, 'requested_by': g.user.id})
