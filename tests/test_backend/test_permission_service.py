"""Tests for the permission evaluator."""
import pytest
from backend.services import permission_service, role_service, user_role_service
from shared.enums import AccessLevel, SiteAction, StatusAccessKey, StatusTransition, SurveyStatus
from shared.schemas import PermissionDocument


def doc(**kwargs):
    return PermissionDocument.model_validate(kwargs)


class TestAggregation:
    """Pure aggregation over permission documents."""

    def test_no_documents_denies(self):
        for transition in StatusTransition:
            assert permission_service.transition_allowed([], transition) is False
        for key in StatusAccessKey:
            assert permission_service.access_level([], key) is AccessLevel.NONE
        assert permission_service.site_action_allowed([], SiteAction.CREATE) is False

    def test_transition_is_or_across_documents(self):
        docs = [
            doc(site_status={'created_to_submitted': True}),
            doc(site_status={'under_revision_to_approved': True}),
        ]
        assert permission_service.transition_allowed(docs, StatusTransition.CREATED_TO_SUBMITTED)
        assert permission_service.transition_allowed(docs, 'under_revision_to_approved')
        assert not permission_service.transition_allowed(docs, StatusTransition.UNDER_REVISION_TO_REWORK)

    def test_access_level_is_max_across_documents(self):
        docs = [
            doc(site_access={'submitted_status': 'view'}),
            doc(site_access={'submitted_status': 'edit'}),
            doc(site_access={'submitted_status': 'none'}),
        ]
        assert permission_service.access_level(docs, StatusAccessKey.SUBMITTED) is AccessLevel.EDIT
        assert permission_service.access_level(docs[:1], 'submitted_status') is AccessLevel.VIEW

    def test_adding_a_document_never_reduces_permissions(self):
        base = [doc(site_status={'created_to_submitted': True}, site_access={'created_status': 'edit'})]
        extended = base + [doc()]
        assert permission_service.aggregate(extended) == permission_service.aggregate(base)

    def test_unknown_keys_deny(self):
        docs = [doc(site_status={'created_to_submitted': True}, site_access={'created_status': 'edit'})]
        assert permission_service.transition_allowed(docs, 'created_to_approved') is False
        assert permission_service.access_level(docs, 'archived_status') is AccessLevel.NONE
        assert permission_service.site_action_allowed(docs, 'launch') is False

    def test_access_key_for_status(self):
        assert permission_service.access_key_for_status(SurveyStatus.REWORK) is StatusAccessKey.REWORK
        assert permission_service.access_key_for_status('under_revision') is StatusAccessKey.UNDER_REVISION
        assert permission_service.access_key_for_status('bogus') is None


def test_user_with_no_roles_is_denied(app, make_user):
    with app.app_context():
        user_id = make_user()
        assert not permission_service.has_transition_permission(user_id, StatusTransition.CREATED_TO_SUBMITTED)
        assert permission_service.access_level_for(user_id, StatusAccessKey.CREATED) is AccessLevel.NONE
        assert not permission_service.can_create_and_assign_site(user_id)

        summary = permission_service.get_user_permissions(user_id)
        assert summary.roles == []
        assert summary.can_create_and_assign_site is False


def test_unknown_user_is_denied_without_error(app):
    with app.app_context():
        assert not permission_service.has_transition_permission(9999, StatusTransition.CREATED_TO_SUBMITTED)
        assert permission_service.get_user_permissions(9999).roles == []


def test_multiple_roles_combine(app, make_user):
    with app.app_context():
        user_id = make_user(roles=['survey_engineer', 'approver'])
        summary = permission_service.get_user_permissions(user_id)

        assert summary.roles == ['approver', 'survey_engineer']
        assert summary.site_status.created_to_submitted is True
        assert summary.site_status.under_revision_to_approved is True
        # survey_engineer gives view, approver gives edit
        assert summary.site_access.under_revision_status == 'edit'
        assert summary.site_access.created_status == 'edit'
        assert summary.can_create_and_assign_site is False


def test_coordinator_can_create_sites(app, make_user):
    with app.app_context():
        user_id = make_user(roles=['coordinator'])
        assert permission_service.can_create_and_assign_site(user_id)
        assert not permission_service.has_transition_permission(user_id, StatusTransition.CREATED_TO_SUBMITTED)


def test_revocation_takes_effect_immediately(app, make_user):
    with app.app_context():
        user_id = make_user(roles=['approver'])
        transition = StatusTransition.UNDER_REVISION_TO_APPROVED
        assert permission_service.has_transition_permission(user_id, transition)

        approver = role_service.get_role_by_name('approver')
        user_role_service.remove_role_from_user(user_id, approver.id)

        assert not permission_service.has_transition_permission(user_id, transition)


def test_deactivated_role_stops_granting(app, make_user):
    with app.app_context():
        user_id = make_user(roles=['approver'])
        approver = role_service.get_role_by_name('approver')
        role_service.deactivate_role(approver.id)

        assert not permission_service.has_transition_permission(
            user_id, StatusTransition.SUBMITTED_TO_UNDER_REVISION
        )


def test_malformed_stored_document_is_treated_as_empty(app, make_user):
    from backend.models import db, Role
    with app.app_context():
        role = Role(name='broken', permissions={'site_status': 'yes please'})
        db.session.add(role)
        db.session.commit()
        user_id = make_user()
        user_role_service.assign_role_to_user(user_id, role.id)

        assert not permission_service.has_transition_permission(user_id, StatusTransition.CREATED_TO_SUBMITTED)


def test_legacy_site_actions_keep_the_rest_of_the_role(app, make_user):
    from backend.models import db, Role
    with app.app_context():
        role = Role.query.filter_by(name='admin').one()
        role.permissions = dict(role.permissions, sites=['create', 'assign', 'view', 'change_status'])
        db.session.commit()
        user_id = make_user(roles=['admin'])

        assert permission_service.has_transition_permission(user_id, StatusTransition.UNDER_REVISION_TO_APPROVED)
        assert permission_service.can_create_and_assign_site(user_id)


def test_super_admin_helper(app, make_user):
    with app.app_context():
        assert permission_service.is_super_admin(make_user(roles=['super_admin']))
        assert not permission_service.is_super_admin(make_user(roles=['admin']))
