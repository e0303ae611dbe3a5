"""Projects blueprint for Flask API."""
from flask import Blueprint, jsonify
from ..models import Project
from ..base.crud_base import CRUDBase, pagination_args
from ..services import user_project_service
from ..utils import parse_bool_arg
from .auth import login_required, roles_required
from shared.enums import RoleName
from shared.errors import DuplicateError
from shared.validation import Validator, ValidationError
bp = Blueprint('projects', __name__, url_prefix='/api')


class ProjectCRUD(CRUDBase):
    """CRUD operations for Project model."""

    def __init__(self):
        super().__init__(Project, logger_name='projects')

    def serialize(self, project):
        return {
            'id': project.id,
            'name': project.name,
            'code': project.code,
            'description': project.description,
            'client': project.client,
            'is_active': project.is_active,
            'created_at': project.created_at.isoformat() if project.created_at else None,
            'updated_at': project.updated_at.isoformat() if project.updated_at else None,
        }

    def _check_unique_name(self, name, project_id=None):
        # Surveys resolve their project by exact name
        query = Project.query.filter(Project.name == name)
        if project_id is not None:
            query = query.filter(Project.id != project_id)
        if query.first() is not None:
            raise DuplicateError(f"Project '{name}' already exists")

    def validate_create_data(self, data):
        validated_data = Validator.validate_project_data(data)
        self._check_unique_name(validated_data['name'])
        return validated_data

    def validate_update_data(self, data, resource=None):
        """Validate only the fields present in the request."""
        validated_data = {}

        if 'name' in data:
            name = data['name']
            if not isinstance(name, str) or not name.strip():
                raise ValidationError('name must be a non-empty string')
            validated_data['name'] = Validator.validate_string_length(name, 'Project name', 1, 255)
            self._check_unique_name(validated_data['name'], resource.id if resource else None)

        if data.get('code') is not None:
            validated_data['code'] = Validator.validate_string_length(data['code'], 'Project code', 0, 50)

        for field, label, max_length in (('description', 'Project description', 1000), ('client', 'Client', 255)):
            if data.get(field) is not None:
                validated_data[field] = Validator.sanitize_html(
                    Validator.validate_string_length(data[field], label, 0, max_length)
                )

        if 'is_active' in data:
            if not isinstance(data['is_active'], bool):
                raise ValidationError('is_active must be a boolean')
            validated_data['is_active'] = data['is_active']

        return validated_data


project_crud = ProjectCRUD()


@bp.route('/projects', methods=['GET'])
@login_required
def get_projects():
    page, per_page = pagination_args()
    return project_crud.get_list(page=page, per_page=per_page,
                                 include_inactive=parse_bool_arg('include_inactive'))


@bp.route('/projects/<int:project_id>', methods=['GET'])
@login_required
def get_project(project_id):
    return project_crud.get_detail(project_id)


@bp.route('/projects', methods=['POST'])
@roles_required(RoleName.ADMIN)
def create_project():
    return project_crud.create()


@bp.route('/projects/<int:project_id>', methods=['PUT'])
@roles_required(RoleName.ADMIN)
def update_project(project_id):
    return project_crud.update(project_id)


@bp.route('/projects/<int:project_id>', methods=['DELETE'])
@roles_required(RoleName.ADMIN)
def delete_project(project_id):
    """Deactivate a project; its surveys and memberships stay for audit."""
    return project_crud.delete(project_id)


@bp.route('/projects/<int:project_id>/users', methods=['GET'])
@roles_required(RoleName.ADMIN, RoleName.COORDINATOR)
def project_users(project_id):
    project_crud.get_or_404(project_id)
    return jsonify({'users': user_project_service.get_project_users(project_id)})
