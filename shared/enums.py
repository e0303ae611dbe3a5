import enum


class SurveyStatus(str, enum.Enum):
    """Canonical survey workflow states.

    Stored in the Survey ``TSSR_Status`` column. ``rework`` is an editable
    state that loops back to ``submitted``; ``approved`` is terminal.
    """
    CREATED = "created"
    SUBMITTED = "submitted"
    UNDER_REVISION = "under_revision"
    REWORK = "rework"
    APPROVED = "approved"


# Values written by the legacy survey form before the workflow vocabulary existed
LEGACY_STATUS_ALIASES = {
    "review": SurveyStatus.UNDER_REVISION,
    "done": SurveyStatus.APPROVED,
}


class StatusTransition(str, enum.Enum):
    """Transition names used as keys of a role's ``site_status`` permissions."""
    CREATED_TO_SUBMITTED = "created_to_submitted"
    SUBMITTED_TO_UNDER_REVISION = "submitted_to_under_revision"
    UNDER_REVISION_TO_REWORK = "under_revision_to_rework"
    UNDER_REVISION_TO_APPROVED = "under_revision_to_approved"


class StatusAccessKey(str, enum.Enum):
    """Keys of a role's ``site_access`` permissions, one per survey status."""
    CREATED = "created_status"
    REWORK = "rework_status"
    SUBMITTED = "submitted_status"
    UNDER_REVISION = "under_revision_status"
    APPROVED = "approved_status"


class AccessLevel(str, enum.Enum):
    """Tri-state access to a survey in a given status.

    Levels are ordered ``none < view < edit``.
    """
    NONE = "none"
    VIEW = "view"
    EDIT = "edit"

    @property
    def rank(self):
        return _ACCESS_RANK[self]


_ACCESS_RANK = {AccessLevel.NONE: 0, AccessLevel.VIEW: 1, AccessLevel.EDIT: 2}


class SiteAction(str, enum.Enum):
    """Site-level actions a role may list under ``sites``."""
    CREATE = "create"
    ASSIGN = "assign"
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"


class RoleName(str, enum.Enum):
    """Role names the workflow and notification rules refer to."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    SURVEY_ENGINEER = "survey_engineer"
    SITE_ENGINEER = "site_engineer"
    APPROVER = "approver"


class NotificationType(str, enum.Enum):
    SURVEY_CREATED = "survey_created"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"
    REWORK = "rework"
    APPROVAL = "approval"


class EventKind(str, enum.Enum):
    """Workflow events the notification dispatcher understands."""
    SURVEY_CREATED = "survey_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    REWORK_REQUESTED = "rework_requested"
