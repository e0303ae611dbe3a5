"""Tests for the role store and the user-role / user-project binding stores."""
import json
import pytest
from backend.models import db, UserRole, UserProject
from backend.services import role_service, user_project_service, user_role_service
from shared.errors import DuplicateError, NotFoundError, ValidationError


class TestRoleStore:

    def test_default_roles_seeded(self, app):
        with app.app_context():
            names = [r.name for r in role_service.list_roles()]
            assert names == sorted([
                'super_admin', 'admin', 'coordinator', 'survey_engineer', 'site_engineer', 'approver'
            ])

    def test_seeding_is_idempotent(self, app):
        with app.app_context():
            assert role_service.seed_default_roles() == []

    def test_seed_from_custom_file(self, app, tmp_path):
        path = tmp_path / 'roles.json'
        path.write_text(json.dumps([{'name': 'auditor', 'permissions': {'sites': ['view']}}]))
        with app.app_context():
            assert role_service.seed_default_roles(path) == ['auditor']
            assert role_service.get_role_by_name('auditor').permissions['sites'] == ['view']

    def test_create_role_normalizes_permissions(self, app):
        with app.app_context():
            role = role_service.create_role({
                'name': 'reviewer',
                'permissions': {'site_status': {'submitted_to_under_revision': True}},
            })
            stored = role_service.get_role(role.id).permissions
            assert stored['site_status']['submitted_to_under_revision'] is True
            assert stored['site_status']['created_to_submitted'] is False
            assert stored['site_access']['approved_status'] == 'none'

    def test_duplicate_role_name_rejected(self, app):
        with app.app_context():
            with pytest.raises(DuplicateError):
                role_service.create_role({'name': 'approver'})

    def test_invalid_permission_document_rejected(self, app):
        with app.app_context():
            with pytest.raises(ValidationError):
                role_service.create_role({
                    'name': 'odd',
                    'permissions': {'site_access': {'created_status': 'owner'}},
                })
            assert role_service.get_role_by_name('odd') is None

    def test_update_and_deactivate(self, app):
        with app.app_context():
            role = role_service.get_role_by_name('coordinator')
            role_service.update_role(role.id, {'description': 'Regional coordinator'})
            assert role_service.get_role(role.id).description == 'Regional coordinator'

            role_service.deactivate_role(role.id)
            assert 'coordinator' not in [r.name for r in role_service.list_roles()]
            assert 'coordinator' in [r.name for r in role_service.list_roles(include_inactive=True)]

    def test_missing_role(self, app):
        with app.app_context():
            with pytest.raises(NotFoundError):
                role_service.get_role(4242)


class TestUserRoleStore:

    def test_assign_records_audit_fields(self, app, make_user):
        with app.app_context():
            admin_id = make_user(roles=['admin'])
            user_id = make_user()
            role = role_service.get_role_by_name('approver')

            binding = user_role_service.assign_role_to_user(user_id, role.id, assigned_by=admin_id)
            assert binding.is_active is True
            assert binding.assigned_by == admin_id
            assert binding.assigned_at is not None

            roles = user_role_service.get_user_roles(user_id)
            assert [r['name'] for r in roles] == ['approver']
            assert roles[0]['assigned_by'] == admin_id

    def test_duplicate_active_binding_rejected(self, app, make_user):
        with app.app_context():
            user_id = make_user(roles=['approver'])
            role = role_service.get_role_by_name('approver')
            with pytest.raises(DuplicateError):
                user_role_service.assign_role_to_user(user_id, role.id)
            assert UserRole.query.filter_by(user_id=user_id, role_id=role.id).count() == 1

    def test_remove_is_soft_delete_and_allows_reassignment(self, app, make_user):
        with app.app_context():
            user_id = make_user(roles=['approver'])
            role = role_service.get_role_by_name('approver')

            user_role_service.remove_role_from_user(user_id, role.id)
            assert user_role_service.get_user_role_names(user_id) == set()
            rows = UserRole.query.filter_by(user_id=user_id, role_id=role.id).all()
            assert len(rows) == 1 and rows[0].is_active is False

            user_role_service.assign_role_to_user(user_id, role.id)
            assert user_role_service.user_has_role(user_id, 'approver')
            assert UserRole.query.filter_by(user_id=user_id, role_id=role.id).count() == 2

    def test_remove_missing_binding(self, app, make_user):
        with app.app_context():
            user_id = make_user()
            with pytest.raises(NotFoundError):
                user_role_service.remove_role_from_user(user_id, role_service.get_role_by_name('admin').id)

    def test_assign_errors(self, app, make_user):
        with app.app_context():
            user_id = make_user()
            with pytest.raises(NotFoundError):
                user_role_service.assign_role_to_user(9999, role_service.get_role_by_name('admin').id)
            with pytest.raises(NotFoundError):
                user_role_service.assign_role_to_user(user_id, 9999)

            role = role_service.get_role_by_name('admin')
            role_service.deactivate_role(role.id)
            with pytest.raises(ValidationError):
                user_role_service.assign_role_to_user(user_id, role.id)

    def test_role_helpers(self, app, make_user):
        with app.app_context():
            user_id = make_user(roles=['coordinator', 'approver'])
            assert user_role_service.user_has_any_role(user_id, ['admin', 'approver'])
            assert not user_role_service.user_has_any_role(user_id, ['admin'])
            assert not user_role_service.user_has_any_role(user_id, [])

            coordinator = role_service.get_role_by_name('coordinator')
            users = user_role_service.get_role_users(coordinator.id)
            assert [u['user']['id'] for u in users] == [user_id]


class TestUserProjectStore:

    def test_assign_and_list(self, app, make_user, make_project):
        with app.app_context():
            user_id = make_user()
            project_id = make_project('Rollout North', code='RN')

            user_project_service.assign_user_to_project(user_id, project_id, role_in_project='Lead')
            projects = user_project_service.get_user_projects(user_id)
            assert [p['name'] for p in projects] == ['Rollout North']
            assert projects[0]['role_in_project'] == 'Lead'

            members = user_project_service.get_project_users(project_id)
            assert [m['user']['id'] for m in members] == [user_id]
            assert user_project_service.user_is_assigned_to_project(user_id, project_id)

    def test_duplicate_membership_rejected(self, app, make_user, make_project):
        with app.app_context():
            user_id = make_user()
            project_id = make_project()
            user_project_service.assign_user_to_project(user_id, project_id)
            with pytest.raises(DuplicateError):
                user_project_service.assign_user_to_project(user_id, project_id)

    def test_remove_is_soft_delete(self, app, make_user, make_project):
        with app.app_context():
            user_id = make_user()
            project_id = make_project()
            user_project_service.assign_user_to_project(user_id, project_id)
            user_project_service.remove_user_from_project(user_id, project_id)

            assert not user_project_service.user_is_assigned_to_project(user_id, project_id)
            assert UserProject.query.filter_by(user_id=user_id, project_id=project_id).one().is_active is False

            with pytest.raises(NotFoundError):
                user_project_service.remove_user_from_project(user_id, project_id)

    def test_inactive_project_rejected(self, app, make_user, make_project):
        with app.app_context():
            user_id = make_user()
            project_id = make_project(is_active=False)
            with pytest.raises(ValidationError):
                user_project_service.assign_user_to_project(user_id, project_id)

    def test_permission_override_validated_and_updatable(self, app, make_user, make_project):
        with app.app_context():
            user_id = make_user()
            project_id = make_project()
            with pytest.raises(ValidationError):
                user_project_service.assign_user_to_project(
                    user_id, project_id, permissions={'site_status': {'approve_everything': True}}
                )

            user_project_service.assign_user_to_project(
                user_id, project_id, permissions={'site_status': {'created_to_submitted': True}}
            )
            binding = user_project_service.get_membership(user_id, project_id)
            assert binding.permissions['site_status']['created_to_submitted'] is True

            user_project_service.update_user_project_permissions(user_id, project_id, None)
            assert user_project_service.get_membership(user_id, project_id).permissions is None

            user_project_service.update_user_project_role(user_id, project_id, 'Reviewer')
            assert user_project_service.get_membership(user_id, project_id).role_in_project == 'Reviewer'

    def test_resolve_project_id_by_exact_name(self, app, make_project):
        with app.app_context():
            project_id = make_project('Rollout North')
            assert user_project_service.resolve_project_id('Rollout North') == project_id
            assert user_project_service.resolve_project_id('rollout north') is None
            assert user_project_service.resolve_project_id('') is None
            assert user_project_service.resolve_project_id(None) is None

    def test_project_members_with_roles(self, app, make_user, make_project, add_member):
        with app.app_context():
            project_id = make_project()
            coordinator = make_user(roles=['coordinator'])
            approver = make_user(roles=['approver'])
            outsider = make_user(roles=['coordinator'])
            add_member(coordinator, project_id)
            add_member(approver, project_id)

            assert user_project_service.project_members_with_roles(project_id, ['coordinator']) == {coordinator}
            assert user_project_service.project_members_with_roles(
                project_id, ['coordinator', 'approver']
            ) == {coordinator, approver}
            assert outsider not in user_project_service.project_members_with_roles(project_id, ['coordinator'])
            assert user_project_service.project_members_with_roles(None, ['coordinator']) == set()
