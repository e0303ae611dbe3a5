"""Notifications blueprint: the current user's inbox plus admin dispatch."""
from flask import Blueprint, jsonify, g
from ..services import notification_service
from ..utils import get_json_body, parse_bool_arg, parse_int_arg
from .auth import login_required, roles_required
from shared.enums import RoleName
from shared.schemas import DispatchRequest, NotificationResponse, validate_schema

bp = Blueprint('notifications', __name__, url_prefix='/api')


def serialize_notification(notification):
    return NotificationResponse.model_validate(notification).model_dump(mode='json')


@bp.route('/notifications', methods=['GET'])
@login_required
def list_notifications():
    notifications = notification_service.list_notifications(
        g.user.id,
        limit=parse_int_arg('limit', minimum=1),
        offset=parse_int_arg('offset', 0),
        unread_only=parse_bool_arg('unread_only'),
    )
    return jsonify({
        'notifications': [serialize_notification(n) for n in notifications],
        'unread_count': notification_service.unread_count(g.user.id),
    })


@bp.route('/notifications/unread-count', methods=['GET'])
@login_required
def unread_count():
    return jsonify({'unread_count': notification_service.unread_count(g.user.id)})


@bp.route('/notifications/<int:notification_id>/read', methods=['PUT'])
@login_required
def mark_read(notification_id):
    notification = notification_service.mark_read(notification_id, g.user.id)
    return jsonify(serialize_notification(notification))


@bp.route('/notifications/read-all', methods=['PUT'])
@login_required
def mark_all_read():
    updated = notification_service.mark_all_read(g.user.id)
    return jsonify({'updated': updated})


@bp.route('/notifications/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    notification_service.delete_notification(notification_id, g.user.id)
    return jsonify({'message': 'Notification deleted'})


@bp.route('/notifications', methods=['DELETE'])
@login_required
def delete_all_notifications():
    deleted = notification_service.delete_all_notifications(g.user.id)
    return jsonify({'deleted': deleted})


@bp.route('/notifications/dispatch', methods=['POST'])
@roles_required(RoleName.ADMIN)
def dispatch():
    """Run the dispatcher for an event, e.g. to retry after a failed fan-out."""
    data = validate_schema(DispatchRequest, get_json_body())
    created = notification_service.dispatch_notifications(data.event, data.payload)
    return jsonify({'event': data.event, 'notifications_created': created})
