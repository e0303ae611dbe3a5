"""Permission evaluator.

The aggregation helpers take a list of permission documents and are pure, so
they can be tested without a request or a database. The ``*_for_user``
wrappers load the user's active roles on every call.

Aggregation rules:
- a transition is allowed if any document allows it (logical OR)
- the access level for a status is the maximum across documents
- no documents, or a missing key, means denied / ``none``
"""
import logging
from shared.enums import AccessLevel, StatusTransition, StatusAccessKey, SiteAction, SurveyStatus
from shared.schemas import (
    PermissionDocument, PermissionSummary, SiteStatusPermissions, SiteAccessPermissions
)
from . import user_role_service

logger = logging.getLogger(__name__)

STATUS_ACCESS_KEYS = {
    SurveyStatus.CREATED: StatusAccessKey.CREATED,
    SurveyStatus.REWORK: StatusAccessKey.REWORK,
    SurveyStatus.SUBMITTED: StatusAccessKey.SUBMITTED,
    SurveyStatus.UNDER_REVISION: StatusAccessKey.UNDER_REVISION,
    SurveyStatus.APPROVED: StatusAccessKey.APPROVED,
}


def _key(value, enum_cls):
    """Coerce a key to its enum, returning None for unknown names."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def documents_for_roles(roles):
    return [PermissionDocument.from_stored(role.permissions) for role in roles]


def transition_allowed(documents, transition):
    transition = _key(transition, StatusTransition)
    if transition is None:
        return False
    return any(getattr(doc.site_status, transition.value) is True for doc in documents)


def access_level(documents, status_key):
    status_key = _key(status_key, StatusAccessKey)
    if status_key is None:
        return AccessLevel.NONE
    best = AccessLevel.NONE
    for doc in documents:
        level = getattr(doc.site_access, status_key.value)
        if level.rank > best.rank:
            best = level
    return best


def site_action_allowed(documents, action):
    action = _key(action, SiteAction)
    if action is None:
        return False
    return any(action in doc.sites for doc in documents)


def aggregate(documents):
    """Fold documents into one effective PermissionDocument."""
    return PermissionDocument(
        site_status=SiteStatusPermissions(**{
            t.value: transition_allowed(documents, t) for t in StatusTransition
        }),
        site_access=SiteAccessPermissions(**{
            k.value: access_level(documents, k) for k in StatusAccessKey
        }),
        sites=[a for a in SiteAction if site_action_allowed(documents, a)],
    )


def access_key_for_status(status):
    return STATUS_ACCESS_KEYS.get(_key(status, SurveyStatus))


def has_transition_permission(user_id, transition):
    documents = documents_for_roles(user_role_service.get_active_roles(user_id))
    return transition_allowed(documents, transition)


def access_level_for(user_id, status_key):
    documents = documents_for_roles(user_role_service.get_active_roles(user_id))
    return access_level(documents, status_key)


def can_create_and_assign_site(user_id):
    documents = documents_for_roles(user_role_service.get_active_roles(user_id))
    return site_action_allowed(documents, SiteAction.CREATE)


def is_super_admin(user_id):
    return user_role_service.user_has_role(user_id, 'super_admin')


def get_user_permissions(user_id):
    """Aggregated permission summary for a user across all active roles."""
    roles = user_role_service.get_active_roles(user_id)
    effective = aggregate(documents_for_roles(roles))
    summary = PermissionSummary(
        user_id=user_id,
        roles=[role.name for role in roles],
        site_status=effective.site_status,
        site_access=effective.site_access,
        sites=effective.sites,
        can_create_and_assign_site=SiteAction.CREATE in effective.sites,
    )
    logger.debug(f"Permission summary for user {user_id}: roles={summary.roles}")
    return summary
