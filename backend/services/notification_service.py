"""Notification dispatcher and inbox operations.

Each ``on_*`` entry point computes the audience for one workflow event and
persists one notification per recipient in a single bulk insert. Dispatch
is safe to re-run for the same event after a failure; recipients may then be
notified twice, which is accepted.
"""
import logging
from functools import wraps
from datetime import timedelta
from flask import current_app
from sqlalchemy import delete, func, insert, update
from sqlalchemy.exc import SQLAlchemyError
from ..models import db, Notification, now
from shared.enums import EventKind, NotificationType, RoleName, SurveyStatus
from shared.errors import InternalError, NotFoundError, ValidationError
from shared.validation import Validator
from . import user_project_service, user_role_service

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30

STATUS_CHANGE_TITLES = {
    SurveyStatus.SUBMITTED: 'Survey Submitted',
    SurveyStatus.APPROVED: 'Survey Approved',
    SurveyStatus.REWORK: 'Survey Rework Requested',
}


def _status_value(status):
    return status.value if isinstance(status, SurveyStatus) else str(status)


def _store_errors(event):
    """Turn store failures while resolving an audience into InternalError."""
    def decorator(handler):
        @wraps(handler)
        def wrapped(*args, **kwargs):
            try:
                return handler(*args, **kwargs)
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Store failure during {event} dispatch: {e}", exc_info=True)
                raise InternalError('Failed to create notifications')
        return wrapped
    return decorator


def _persist(recipients, title, message, notification_type, survey_id, project_id=None):
    """Bulk insert one row per recipient.

    Raises:
        InternalError: the insert failed; nothing was written
    """
    if not recipients:
        return 0

    created_at = now()
    rows = [{
        'user_id': user_id,
        'title': title,
        'message': message,
        'type': notification_type,
        'related_survey_id': survey_id,
        'related_project_id': project_id,
        'is_read': False,
        'created_at': created_at,
    } for user_id in sorted(recipients)]

    try:
        db.session.execute(insert(Notification), rows)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to persist {len(rows)} {notification_type.value} notifications "
                     f"for survey {survey_id}: {e}", exc_info=True)
        raise InternalError('Failed to create notifications')

    logger.info(f"Created {len(rows)} {notification_type.value} notifications for survey {survey_id}")
    return len(rows)


@_store_errors(EventKind.SURVEY_CREATED.value)
def on_survey_created(survey_id, creator_id, project_name):
    """Notify project coordinators about a new survey, never the creator."""
    project_id = user_project_service.resolve_project_id(project_name)
    if project_id is None:
        logger.info(f"No project row named '{project_name}'; skipping survey_created for {survey_id}")
        return 0

    audience = user_project_service.project_members_with_roles(project_id, [RoleName.COORDINATOR])
    audience.discard(creator_id)
    return _persist(
        audience,
        'New Survey Created',
        f'A new survey has been created for project {project_name}',
        NotificationType.SURVEY_CREATED,
        survey_id,
        project_id,
    )


def status_change_audience(project_id, new_status, assigned_user_id=None, actor_id=None):
    """Recipients of a status change notice.

    Union of project admins and coordinators, the assignee when the survey
    goes to rework and they are a survey engineer, and project approvers when
    the survey is submitted. The actor is always excluded.
    """
    audience = set()
    if project_id is not None:
        audience |= user_project_service.project_members_with_roles(
            project_id, [RoleName.ADMIN, RoleName.COORDINATOR]
        )
        if new_status == SurveyStatus.SUBMITTED:
            audience |= user_project_service.project_members_with_roles(project_id, [RoleName.APPROVER])

    if (new_status == SurveyStatus.REWORK and assigned_user_id
            and user_role_service.user_has_role(assigned_user_id, RoleName.SURVEY_ENGINEER)):
        audience.add(assigned_user_id)

    audience.discard(actor_id)
    return audience


@_store_errors(EventKind.STATUS_CHANGED.value)
def on_status_changed(survey_id, old_status, new_status, actor_id, project_name, assigned_user_id=None):
    new_status = Validator.parse_status(new_status, 'new_status')
    project_id = user_project_service.resolve_project_id(project_name)
    if project_id is None:
        logger.info(f"No project row named '{project_name}'; skipping status_change for {survey_id}")
        return 0

    audience = status_change_audience(project_id, new_status, assigned_user_id, actor_id)
    notification_type = (NotificationType.APPROVAL if new_status == SurveyStatus.APPROVED
                         else NotificationType.STATUS_CHANGE)
    return _persist(
        audience,
        STATUS_CHANGE_TITLES.get(new_status, 'Survey Status Changed'),
        f'Survey {survey_id} status changed from {_status_value(old_status)} to {new_status.value}',
        notification_type,
        survey_id,
        project_id,
    )


@_store_errors(EventKind.ASSIGNED.value)
def on_assignment(survey_id, assigned_user_id, assigned_by_user_id, project_name):
    """Notify the assignee, but only when they hold ``site_engineer``.

    Assignment notices are scoped to field personnel; assigning a survey to
    anyone else produces no notification.
    """
    if not user_role_service.user_has_role(assigned_user_id, RoleName.SITE_ENGINEER):
        logger.debug(f"User {assigned_user_id} is not a site engineer; no assignment notice for {survey_id}")
        return 0

    return _persist(
        {assigned_user_id},
        'New Survey Assignment',
        f'You have been assigned to survey {survey_id}',
        NotificationType.ASSIGNMENT,
        survey_id,
        user_project_service.resolve_project_id(project_name),
    )


@_store_errors(EventKind.REWORK_REQUESTED.value)
def on_rework_requested(survey_id, requested_by_user_id, project_name):
    project_id = user_project_service.resolve_project_id(project_name)
    if project_id is None:
        logger.info(f"No project row named '{project_name}'; skipping rework for {survey_id}")
        return 0

    audience = user_project_service.project_members_with_roles(
        project_id, [RoleName.COORDINATOR, RoleName.APPROVER]
    )
    audience.discard(requested_by_user_id)
    return _persist(
        audience,
        'Rework Request',
        f'A rework has been requested for survey {survey_id}',
        NotificationType.REWORK,
        survey_id,
        project_id,
    )


def _require(payload, key):
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'{key} is required')
    return value


def _optional_id(payload, key):
    value = payload.get(key)
    return None if value is None else Validator.validate_id(value, key)


def dispatch_notifications(event_kind, payload):
    """Run the dispatcher for an event described by a plain payload dict.

    Returns:
        int: number of notifications created
    """
    try:
        kind = EventKind(event_kind)
    except ValueError:
        raise ValidationError(f"event must be one of: {', '.join(k.value for k in EventKind)}")
    if not isinstance(payload, dict):
        raise ValidationError('payload must be a JSON object')

    survey_id = _require(payload, 'survey_id')
    if kind is EventKind.SURVEY_CREATED:
        return on_survey_created(survey_id, _optional_id(payload, 'creator_id'), payload.get('project_name'))
    if kind is EventKind.STATUS_CHANGED:
        return on_status_changed(
            survey_id,
            _require(payload, 'old_status'),
            _require(payload, 'new_status'),
            _optional_id(payload, 'actor_id'),
            payload.get('project_name'),
            _optional_id(payload, 'assigned_user_id'),
        )
    if kind is EventKind.ASSIGNED:
        return on_assignment(
            survey_id,
            Validator.validate_id(payload.get('assigned_user_id'), 'assigned_user_id'),
            _optional_id(payload, 'assigned_by_user_id'),
            payload.get('project_name'),
        )
    return on_rework_requested(
        survey_id, _optional_id(payload, 'requested_by_user_id'), payload.get('project_name')
    )


# Inbox operations

def list_notifications(user_id, limit=None, offset=0, unread_only=False):
    max_limit = current_app.config.get('NOTIFICATION_MAX_PAGE_SIZE', 100)
    if limit is None:
        limit = current_app.config.get('NOTIFICATION_PAGE_SIZE', 50)
    limit = max(1, min(int(limit), max_limit))
    offset = max(0, int(offset))

    query = Notification.query.filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def unread_count(user_id):
    return (
        db.session.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .scalar()
    )


def _owned(notification_id, user_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFoundError(f'Notification {notification_id} not found')
    return notification


def mark_read(notification_id, user_id):
    notification = _owned(notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = now()
        db.session.commit()
    return notification


def mark_all_read(user_id):
    """Mark every unread notification of a user as read.

    Returns:
        int: number of notifications updated
    """
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=now())
    )
    db.session.commit()
    return result.rowcount


def delete_notification(notification_id, user_id):
    notification = _owned(notification_id, user_id)
    db.session.delete(notification)
    db.session.commit()
    return True


def delete_all_notifications(user_id):
    result = db.session.execute(delete(Notification).where(Notification.user_id == user_id))
    db.session.commit()
    return result.rowcount


def prune_expired(retention_days=None):
    """Delete notifications older than the retention window."""
    if retention_days is None:
        retention_days = current_app.config.get('NOTIFICATION_RETENTION_DAYS', DEFAULT_RETENTION_DAYS)
    cutoff = now() - timedelta(days=retention_days)
    result = db.session.execute(delete(Notification).where(Notification.created_at < cutoff))
    db.session.commit()
    logger.info(f"Pruned {result.rowcount} notifications older than {retention_days} days")
    return result.rowcount
