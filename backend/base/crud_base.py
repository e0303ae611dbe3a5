"""Base CRUD class for Flask blueprints."""
from flask import jsonify, request
from typing import Type, Optional, Dict, Any
from sqlalchemy.exc import SQLAlchemyError
from shared.errors import NotFoundError, InternalError
from ..models import db
from ..utils import get_json_body
import logging


class CRUDBase:
    """Base class providing common CRUD operations for Flask blueprints.

    Errors are raised as ``WorkflowError`` subclasses and rendered by the
    application's error handler. Models with an ``is_active`` column are
    soft-deleted and hidden from listings unless ``include_inactive`` is set.

    Subclasses should override:
    - serialize() - to customize serialization
    - validate_create_data() - to customize creation validation
    - validate_update_data() - to customize update validation
    """

    def __init__(self, model_class: Type, logger_name: Optional[str] = None):
        self.model = model_class
        self.logger = logging.getLogger(logger_name or self.__class__.__name__)

    @property
    def soft_delete(self) -> bool:
        return hasattr(self.model, 'is_active')

    def base_query(self, include_inactive: bool = False):
        query = self.model.query
        if self.soft_delete and not include_inactive:
            query = query.filter(self.model.is_active.is_(True))
        return query

    def get_list(self, page: int = 1, per_page: int = 50, max_per_page: int = 100,
                 include_inactive: bool = False):
        """Paginated list of resources as a JSON response."""
        per_page = max(1, min(per_page, max_per_page))

        pagination = self.base_query(include_inactive).order_by(self.model.id).paginate(
            page=page,
            per_page=per_page,
            error_out=False
        )

        return jsonify({
            self.get_plural_name(): [self.serialize(item) for item in pagination.items],
            'pagination': {
                'page': pagination.page,
                'per_page': pagination.per_page,
                'total': pagination.total,
                'pages': pagination.pages,
                'has_next': pagination.has_next,
                'has_prev': pagination.has_prev
            }
        })

    def get_or_404(self, resource_id: int):
        resource = db.session.get(self.model, resource_id)
        if resource is None:
            raise NotFoundError(f'{self.get_singular_name().title()} {resource_id} not found')
        return resource

    def get_detail(self, resource_id: int):
        return jsonify(self.serialize(self.get_or_404(resource_id)))

    def create(self):
        """Create a resource from the request body."""
        validated_data = self.validate_create_data(get_json_body())
        resource = self.model(**validated_data)
        self._commit(lambda: db.session.add(resource), 'create')

        self.logger.info(f"Created {self.get_singular_name()}: {resource.id} - {getattr(resource, 'name', 'N/A')}")
        return jsonify({
            'id': resource.id,
            'message': f'{self.get_singular_name().title()} created successfully'
        }), 201

    def update(self, resource_id: int):
        resource = self.get_or_404(resource_id)
        validated_data = self.validate_update_data(get_json_body(), resource)

        def apply():
            for key, value in validated_data.items():
                setattr(resource, key, value)
        self._commit(apply, 'update')

        self.logger.info(f"Updated {self.get_singular_name()}: {resource_id}")
        return jsonify({'message': f'{self.get_singular_name().title()} updated successfully'})

    def delete(self, resource_id: int):
        """Deactivate (or delete, for models without ``is_active``) a resource."""
        resource = self.get_or_404(resource_id)
        if self.soft_delete:
            self._commit(lambda: setattr(resource, 'is_active', False), 'delete')
        else:
            self._commit(lambda: db.session.delete(resource), 'delete')

        self.logger.info(f"Deleted {self.get_singular_name()}: {resource_id}")
        return jsonify({'message': f'{self.get_singular_name().title()} deleted successfully'})

    def _commit(self, change, operation):
        try:
            change()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            self.logger.error(f"Failed to {operation} {self.get_singular_name()}: {e}", exc_info=True)
            raise InternalError(f'Failed to {operation} {self.get_singular_name()}')

    def serialize(self, resource) -> Dict[str, Any]:
        """Column-by-column serialization; subclasses usually override."""
        result = {}
        for column in resource.__table__.columns:
            value = getattr(resource, column.key, None)
            if hasattr(value, 'isoformat'):
                result[column.key] = value.isoformat()
            elif hasattr(value, 'value'):
                result[column.key] = value.value
            else:
                result[column.key] = value
        return result

    def validate_create_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def validate_update_data(self, data: Dict[str, Any], resource=None) -> Dict[str, Any]:
        return data

    def get_singular_name(self) -> str:
        table_name = self.model.__tablename__
        if table_name.endswith('s'):
            return table_name[:-1]
        return table_name

    def get_plural_name(self) -> str:
        return self.model.__tablename__


def pagination_args(default_per_page: int = 50):
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', default_per_page, type=int)
    return max(1, page), per_page
