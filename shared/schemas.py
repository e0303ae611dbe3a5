"""Pydantic schemas for validation and serialization."""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from shared.enums import AccessLevel, SiteAction, SurveyStatus, NotificationType
from shared.errors import ValidationError
from shared.validation import Validator


def validate_schema(schema_cls, data):
    """Validate raw data against a schema, converting pydantic errors.

    Raises:
        ValidationError: with one ``field: message`` entry per failing field
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Request data must be a JSON object')
    try:
        return schema_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = []
        fields = {}
        for error in e.errors():
            field = '.'.join(str(x) for x in error['loc']) or '__root__'
            errors.append(f"{field}: {error['msg']}")
            fields[field] = error['msg']
        raise ValidationError('; '.join(errors), details={'fields': fields})


# Permission document
class SiteStatusPermissions(BaseModel):
    """Transition guards. A missing flag is a denial."""
    created_to_submitted: bool = False
    submitted_to_under_revision: bool = False
    under_revision_to_rework: bool = False
    under_revision_to_approved: bool = False

    model_config = ConfigDict(extra='forbid')


class SiteAccessPermissions(BaseModel):
    """Status-scoped access levels. A missing level is ``none``."""
    created_status: AccessLevel = AccessLevel.NONE
    rework_status: AccessLevel = AccessLevel.NONE
    submitted_status: AccessLevel = AccessLevel.NONE
    under_revision_status: AccessLevel = AccessLevel.NONE
    approved_status: AccessLevel = AccessLevel.NONE

    model_config = ConfigDict(extra='forbid')


class PermissionDocument(BaseModel):
    """Structured permissions carried by a Role or a project membership override."""
    site_status: SiteStatusPermissions = Field(default_factory=SiteStatusPermissions)
    site_access: SiteAccessPermissions = Field(default_factory=SiteAccessPermissions)
    sites: List[SiteAction] = Field(default_factory=list)

    # Legacy role rows also carry coarse lists (projects, users, reports, ...)
    # that nothing evaluates; they are dropped on load.
    model_config = ConfigDict(extra='ignore')

    @field_validator('sites')
    @classmethod
    def dedupe_sites(cls, v):
        return list(dict.fromkeys(v))

    @classmethod
    def from_stored(cls, raw):
        """Load a stored document, treating anything malformed as no permissions.

        Used on the evaluation path, which must never raise on bad data.
        Unknown ``sites`` actions (legacy rows list ``change_status``) are
        dropped one by one; the rest of the document is kept.
        """
        if not isinstance(raw, dict):
            return cls()
        sites = raw.get('sites')
        if isinstance(sites, list):
            known = {action.value for action in SiteAction}
            raw = dict(raw, sites=[s for s in sites if isinstance(s, str) and s in known])
        try:
            return cls.model_validate(raw)
        except PydanticValidationError:
            return cls()


# Role schemas
class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = Field(default="", max_length=1000)
    permissions: PermissionDocument = Field(default_factory=PermissionDocument)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return Validator.validate_role_name(v)

    @field_validator('description')
    @classmethod
    def sanitize_description(cls, v):
        return Validator.sanitize_html(v) if v else ""


class RoleUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=1000)
    permissions: Optional[PermissionDocument] = None
    is_active: Optional[bool] = None

    @field_validator('description')
    @classmethod
    def sanitize_description(cls, v):
        return Validator.sanitize_html(v) if v else v


class RoleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = ""
    permissions: Optional[Dict[str, Any]] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# Binding schemas
class UserRoleAssign(BaseModel):
    role_id: int = Field(..., gt=0)


class UserProjectAssign(BaseModel):
    project_id: int = Field(..., gt=0)
    role_in_project: Optional[str] = Field(None, max_length=100)
    permissions: Optional[PermissionDocument] = None

    @field_validator('role_in_project')
    @classmethod
    def sanitize_role_label(cls, v):
        return Validator.sanitize_html(v.strip()) if v else None


# Survey schemas
class SurveyCreate(BaseModel):
    site_id: str = Field(..., min_length=1, max_length=50)
    user_id: int = Field(..., gt=0)
    project: str = Field(..., min_length=1, max_length=255)
    session_id: Optional[str] = Field(None, min_length=1, max_length=255)
    country: Optional[str] = Field(default="", max_length=255)
    ct: Optional[str] = Field(default="", max_length=255)
    company: Optional[str] = Field(default="", max_length=255)

    @field_validator('site_id', 'project')
    @classmethod
    def strip_required(cls, v):
        return Validator.validate_string_length(v, 'value', 1)


class SurveyAssign(BaseModel):
    user_id: int = Field(..., gt=0)


class StatusChangeRequest(BaseModel):
    """Target status from the stored, workflow or transition vocabulary."""
    status: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('notes')
    @classmethod
    def sanitize_notes(cls, v):
        return Validator.sanitize_html(v) if v else v


class SurveyResponseSchema(BaseModel):
    session_id: str
    site_id: str
    user_id: int
    creator_id: int
    project: Optional[str] = ""
    country: Optional[str] = ""
    ct: Optional[str] = ""
    company: Optional[str] = ""
    status: SurveyStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class StatusHistoryResponse(BaseModel):
    id: int
    session_id: str
    username: str
    current_status: str
    new_status: str
    changed_at: datetime
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# Notification schemas
class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    related_survey_id: Optional[str] = None
    related_project_id: Optional[int] = None
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class DispatchRequest(BaseModel):
    event: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


class PermissionSummary(BaseModel):
    """Aggregated permissions for a user, used by clients to show/hide controls."""
    user_id: int
    roles: List[str]
    site_status: SiteStatusPermissions
    site_access: SiteAccessPermissions
    sites: List[SiteAction]
    can_create_and_assign_site: bool

    model_config = ConfigDict(use_enum_values=True)
