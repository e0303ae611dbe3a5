"""Survey workflow: status state machine, transition guards and fan-out.

Status vocabulary
-----------------
The stored status is always a canonical ``SurveyStatus``. Callers may name a
target as a canonical status, a legacy stored value (``review``, ``done``) or a
permission transition name (``created_to_submitted`` ...). ``TRANSITIONS`` is
the single table mapping each (from, to) pair to the permission guarding it.

Guards
------
A transition is allowed when the acting user is an active member of the
survey's project and the effective permission documents for that project
grant the transition. The effective documents are the membership's
permission override when one is set, otherwise the user's active roles.

Atomicity
---------
The status write is one conditional UPDATE keyed by session id and the
status the guard was evaluated against; it commits together with the status
history row. Notification dispatch runs afterwards and its failure is
reported, never rolled back into the status change.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from ..models import db, Survey, SurveyStatusHistory, User, now
from shared.enums import StatusTransition, SurveyStatus
from shared.errors import (
    AuthorizationError, InternalError, NotFoundError, ValidationError, WorkflowError
)
from shared.schemas import PermissionDocument, SurveyCreate, validate_schema
from shared.validation import Validator
from . import notification_service, permission_service, user_project_service, user_role_service

logger = logging.getLogger(__name__)

# (from, to) -> guarding permission. Rework is an editable state, so
# resubmitting from it is guarded like the first submission.
TRANSITIONS = {
    (SurveyStatus.CREATED, SurveyStatus.SUBMITTED): StatusTransition.CREATED_TO_SUBMITTED,
    (SurveyStatus.REWORK, SurveyStatus.SUBMITTED): StatusTransition.CREATED_TO_SUBMITTED,
    (SurveyStatus.SUBMITTED, SurveyStatus.UNDER_REVISION): StatusTransition.SUBMITTED_TO_UNDER_REVISION,
    (SurveyStatus.UNDER_REVISION, SurveyStatus.REWORK): StatusTransition.UNDER_REVISION_TO_REWORK,
    (SurveyStatus.UNDER_REVISION, SurveyStatus.APPROVED): StatusTransition.UNDER_REVISION_TO_APPROVED,
}

TRANSITION_TARGETS = {
    StatusTransition.CREATED_TO_SUBMITTED: SurveyStatus.SUBMITTED,
    StatusTransition.SUBMITTED_TO_UNDER_REVISION: SurveyStatus.UNDER_REVISION,
    StatusTransition.UNDER_REVISION_TO_REWORK: SurveyStatus.REWORK,
    StatusTransition.UNDER_REVISION_TO_APPROVED: SurveyStatus.APPROVED,
}


@dataclass
class TransitionDecision:
    """Outcome of evaluating a requested transition without applying it."""
    allowed: bool
    reason: Optional[str] = None
    error_code: Optional[str] = None
    from_status: Optional[SurveyStatus] = None
    to_status: Optional[SurveyStatus] = None
    transition: Optional[StatusTransition] = None

    def to_dict(self):
        result = {'allowed': self.allowed}
        if self.reason:
            result['reason'] = self.reason
        if self.error_code:
            result['code'] = self.error_code
        if self.from_status:
            result['from_status'] = self.from_status.value
        if self.to_status:
            result['to_status'] = self.to_status.value
        if self.transition:
            result['transition'] = self.transition.value
        return result


@dataclass
class TransitionResult:
    """Outcome of an applied transition.

    ``notification_error`` is set when the status change succeeded but the
    fan-out failed (degraded success).
    """
    survey: Survey
    from_status: SurveyStatus
    to_status: SurveyStatus
    transition: StatusTransition
    notifications_created: int = 0
    notification_error: Optional[str] = None

    @property
    def degraded(self):
        return self.notification_error is not None


def get_survey(session_id):
    if not session_id:
        raise ValidationError('survey id is required')
    survey = Survey.query.filter_by(session_id=session_id).first()
    if survey is None:
        raise NotFoundError(f'Survey {session_id} not found')
    return survey


def resolve_transition(current_status, target):
    """Map a requested target onto a (transition, new status) pair.

    Raises:
        ValidationError: unknown target or no transition from the current status
    """
    transition, target_status = Validator.parse_transition_target(target)
    if transition is not None:
        target_status = TRANSITION_TARGETS[transition]
        if TRANSITIONS.get((current_status, target_status)) is not transition:
            raise ValidationError(
                f"Transition {transition.value} is not valid from status {current_status.value}"
            )
        return transition, target_status

    transition = TRANSITIONS.get((current_status, target_status))
    if transition is None:
        raise ValidationError(
            f"Cannot change status from {current_status.value} to {target_status.value}"
        )
    return transition, target_status


def effective_documents(user_id, project_name):
    """Permission documents that apply to a user for surveys of a project.

    Returns an empty list (no permissions) when the project name does not
    resolve or the user is not an active member.
    """
    project_id = user_project_service.resolve_project_id(project_name)
    if project_id is None:
        return []
    membership = user_project_service.get_membership(user_id, project_id)
    if membership is None:
        return []
    if membership.permissions is not None:
        return [PermissionDocument.from_stored(membership.permissions)]
    return permission_service.documents_for_roles(user_role_service.get_active_roles(user_id))


def _deny(code, reason, **kwargs):
    return TransitionDecision(allowed=False, reason=reason, error_code=code, **kwargs)


def evaluate_transition(user_id, session_id, target_status):
    """Decide whether a user may move a survey to a target status.

    Never raises for bad input or missing data; the reason and error code are
    carried on the returned decision.
    """
    if not user_id:
        return _deny(ValidationError.code, 'user id is required')
    try:
        survey = get_survey(session_id)
        transition, new_status = resolve_transition(survey.status, target_status)
    except WorkflowError as e:
        return _deny(e.code, e.message)

    documents = effective_documents(user_id, survey.project)
    if not permission_service.transition_allowed(documents, transition):
        return _deny(
            AuthorizationError.code,
            f'Insufficient permissions to change status from {survey.status.value} to {new_status.value}',
            from_status=survey.status, to_status=new_status, transition=transition,
        )
    return TransitionDecision(
        allowed=True, from_status=survey.status, to_status=new_status, transition=transition
    )


def _error_for(decision):
    for cls in (ValidationError, AuthorizationError, NotFoundError):
        if decision.error_code == cls.code:
            return cls(decision.reason)
    return InternalError(decision.reason or 'Transition failed')


def apply_transition(user_id, session_id, target_status, notes=None):
    """Evaluate the guard, write the new status, then fan out notifications.

    Raises:
        AuthorizationError: guard denied; nothing was changed
        ValidationError: unknown target, invalid transition or a concurrent
            status change between evaluation and write
        NotFoundError: survey does not exist
    """
    decision = evaluate_transition(user_id, session_id, target_status)
    if not decision.allowed:
        logger.warning(f"Transition denied for user {user_id} on survey {session_id}: {decision.reason}")
        raise _error_for(decision)

    actor = db.session.get(User, user_id)
    try:
        result = db.session.execute(
            update(Survey)
            .where(Survey.session_id == session_id, Survey.status == decision.from_status)
            .values({Survey.status: decision.to_status, Survey.updated_at: now()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise ValidationError(
                f'Survey {session_id} is no longer in status {decision.from_status.value}'
            )
        db.session.add(SurveyStatusHistory(
            session_id=session_id,
            username=actor.username if actor else str(user_id),
            current_status=decision.from_status.value,
            new_status=decision.to_status.value,
            changed_at=now(),
            notes=notes,
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to write status for survey {session_id}: {e}", exc_info=True)
        raise InternalError('Failed to update survey status')

    survey = get_survey(session_id)
    db.session.refresh(survey)
    logger.info(f"Survey {session_id}: {decision.from_status.value} -> {decision.to_status.value} by user {user_id}")

    outcome = TransitionResult(
        survey=survey,
        from_status=decision.from_status,
        to_status=decision.to_status,
        transition=decision.transition,
    )
    try:
        outcome.notifications_created = notification_service.on_status_changed(
            session_id, decision.from_status, decision.to_status, user_id,
            survey.project, survey.user_id,
        )
    except WorkflowError as e:
        outcome.notification_error = e.message
        logger.error(f"Status of survey {session_id} changed but notification dispatch failed: {e}")
    return outcome


def survey_access_level(user_id, survey):
    """Access level a user has to a survey in its current status."""
    key = permission_service.access_key_for_status(survey.status)
    return permission_service.access_level(effective_documents(user_id, survey.project), key)


def get_status_history(session_id):
    get_survey(session_id)
    return (
        SurveyStatusHistory.query
        .filter_by(session_id=session_id)
        .order_by(SurveyStatusHistory.changed_at, SurveyStatusHistory.id)
        .all()
    )


def _dispatch_safely(action, func, *args):
    try:
        return func(*args), None
    except WorkflowError as e:
        logger.error(f"{action} notification dispatch failed: {e}")
        return 0, e.message


def create_survey(creator_id, data):
    """Create a survey in ``created`` status and notify coordinators and the assignee.

    Returns:
        tuple: (survey, dict with notification counts and any dispatch error)
    """
    if not permission_service.can_create_and_assign_site(creator_id):
        raise AuthorizationError('Insufficient permissions to create and assign sites')

    survey_data = validate_schema(SurveyCreate, data)
    if db.session.get(User, survey_data.user_id) is None:
        raise NotFoundError(f'User {survey_data.user_id} not found')
    session_id = survey_data.session_id or uuid.uuid4().hex
    if Survey.query.filter_by(session_id=session_id).first() is not None:
        raise ValidationError(f'session_id {session_id} already exists')

    survey = Survey(
        site_id=survey_data.site_id,
        session_id=session_id,
        user_id=survey_data.user_id,
        creator_id=creator_id,
        project=survey_data.project,
        country=survey_data.country or "",
        ct=survey_data.ct or "",
        company=survey_data.company or "",
        status=SurveyStatus.CREATED,
        created_at=now(),
    )
    try:
        db.session.add(survey)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create survey for site {survey_data.site_id}: {e}", exc_info=True)
        raise InternalError('Failed to create survey')
    logger.info(f"Created survey {session_id} for site {survey.site_id} (project '{survey.project}')")

    created, created_error = _dispatch_safely(
        'survey_created', notification_service.on_survey_created, session_id, creator_id, survey.project
    )
    assigned, assigned_error = _dispatch_safely(
        'assignment', notification_service.on_assignment, session_id, survey.user_id, creator_id, survey.project
    )
    return survey, {
        'notifications_created': created + assigned,
        'notification_error': created_error or assigned_error,
    }


def assign_survey(user_id, session_id, assignee_id):
    """Reassign a survey and notify the new assignee."""
    if not permission_service.can_create_and_assign_site(user_id):
        raise AuthorizationError('Insufficient permissions to create and assign sites')
    survey = get_survey(session_id)
    if db.session.get(User, assignee_id) is None:
        raise NotFoundError(f'User {assignee_id} not found')

    survey.user_id = assignee_id
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to assign survey {session_id}: {e}", exc_info=True)
        raise InternalError('Failed to assign survey')
    logger.info(f"Survey {session_id} assigned to user {assignee_id} by user {user_id}")

    count, error = _dispatch_safely(
        'assignment', notification_service.on_assignment, session_id, assignee_id, user_id, survey.project
    )
    return survey, {'notifications_created': count, 'notification_error': error}
