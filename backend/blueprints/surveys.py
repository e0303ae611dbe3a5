"""Surveys blueprint: creation, assignment and status workflow."""
from flask import Blueprint, request, jsonify, g
from ..models import Survey
from ..services import workflow_service
from ..utils import get_json_body, parse_int_arg
from .auth import login_required
from shared.schemas import (
    StatusChangeRequest, StatusHistoryResponse, SurveyAssign, SurveyResponseSchema, validate_schema
)
from shared.validation import Validator
bp = Blueprint('surveys', __name__, url_prefix='/api')


def serialize_survey(survey):
    return SurveyResponseSchema.model_validate(survey).model_dump(mode='json')


def _notification_info(info):
    result = {'notifications_created': info['notifications_created']}
    if info['notification_error']:
        result['notification_warning'] = 'Notifications could not be delivered'
    return result


@bp.route('/surveys', methods=['GET'])
@login_required
def list_surveys():
    """List surveys, optionally filtered by project name, status or assignee."""
    query = Survey.query
    project = request.args.get('project')
    if project:
        query = query.filter(Survey.project == project)
    status = request.args.get('status')
    if status:
        query = query.filter(Survey.status == Validator.parse_status(status))
    assignee = parse_int_arg('user_id', minimum=1)
    if assignee is not None:
        query = query.filter(Survey.user_id == assignee)

    limit = min(parse_int_arg('limit', 50, minimum=1), 100)
    offset = parse_int_arg('offset', 0)
    surveys = query.order_by(Survey.created_at.desc()).limit(limit).offset(offset).all()
    return jsonify({'surveys': [serialize_survey(s) for s in surveys]})


@bp.route('/surveys', methods=['POST'])
@login_required
def create_survey():
    survey, info = workflow_service.create_survey(g.user.id, get_json_body())
    result = serialize_survey(survey)
    result.update(_notification_info(info))
    return jsonify(result), 201


@bp.route('/surveys/<session_id>', methods=['GET'])
@login_required
def get_survey(session_id):
    survey = workflow_service.get_survey(session_id)
    result = serialize_survey(survey)
    result['access_level'] = workflow_service.survey_access_level(g.user.id, survey).value
    return jsonify(result)


@bp.route('/surveys/<session_id>/assign', methods=['PUT'])
@login_required
def assign_survey(session_id):
    data = validate_schema(SurveyAssign, get_json_body())
    survey, info = workflow_service.assign_survey(g.user.id, session_id, data.user_id)
    result = serialize_survey(survey)
    result.update(_notification_info(info))
    return jsonify(result)


@bp.route('/surveys/<session_id>/status/evaluate', methods=['POST'])
@login_required
def evaluate_status(session_id):
    """Dry-run a status change for the current user."""
    data = get_json_body()
    decision = workflow_service.evaluate_transition(g.user.id, session_id, data.get('status'))
    return jsonify(decision.to_dict())


@bp.route('/surveys/<session_id>/status', methods=['PUT'])
@login_required
def change_status(session_id):
    data = validate_schema(StatusChangeRequest, get_json_body())
    outcome = workflow_service.apply_transition(g.user.id, session_id, data.status, notes=data.notes)
    result = serialize_survey(outcome.survey)
    result.update({
        'previous_status': outcome.from_status.value,
        'transition': outcome.transition.value,
        'notifications_created': outcome.notifications_created,
    })
    if outcome.degraded:
        result['notification_warning'] = 'Status updated but notifications could not be delivered'
    return jsonify(result)


@bp.route('/surveys/<session_id>/history', methods=['GET'])
@login_required
def status_history(session_id):
    history = workflow_service.get_status_history(session_id)
    return jsonify({
        'history': [StatusHistoryResponse.model_validate(h).model_dump(mode='json') for h in history]
    })


@bp.route('/surveys/<session_id>/access', methods=['GET'])
@login_required
def access_level(session_id):
    survey = workflow_service.get_survey(session_id)
    return jsonify({
        'session_id': session_id,
        'status': survey.status.value,
        'access_level': workflow_service.survey_access_level(g.user.id, survey).value,
    })
