from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index, Enum, JSON
from sqlalchemy.orm import relationship, declarative_base
from shared.enums import SurveyStatus, NotificationType

Base = declarative_base()

# All timestamps are UTC. SQLite drops tzinfo on write, so values read back
# are naive and must be treated as UTC.
APP_TIMEZONE = timezone.utc


def now():
    """Return current datetime in application timezone (UTC, timezone-aware)."""
    return datetime.now(APP_TIMEZONE)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampMixin:
    """Mixin providing created/updated timestamps."""

    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class User(Base, TimestampMixin):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, nullable=False)
    username = Column(String(80), unique=True, nullable=False, server_default="")
    email = Column(String(120), unique=True, nullable=False, server_default="")
    password_hash = Column(String(256), nullable=False, server_default="")
    first_name = Column(String(100), server_default="")
    last_name = Column(String(100), server_default="")
    is_active = Column(Boolean, default=True, nullable=False, server_default='1')

    role_bindings = relationship('UserRole', foreign_keys='UserRole.user_id', back_populates='user', lazy='select')
    project_bindings = relationship('UserProject', foreign_keys='UserProject.user_id', back_populates='user', lazy='select')


class Role(Base, TimestampMixin):
    __tablename__ = 'roles'
    id = Column(Integer, primary_key=True, nullable=False)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text, server_default="")
    # Serialized PermissionDocument (see shared.schemas)
    permissions = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, server_default='1')

    bindings = relationship('UserRole', back_populates='role', lazy='select')


class UserRole(Base, TimestampMixin):
    __tablename__ = 'user_roles'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey('roles.id'), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    assigned_at = Column(DateTime, default=now, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, server_default='1')

    user = relationship('User', foreign_keys=[user_id], back_populates='role_bindings')
    role = relationship('Role', back_populates='bindings')

Index('idx_user_roles_user_active', UserRole.user_id, UserRole.is_active)


class Project(Base, TimestampMixin):
    __tablename__ = 'projects'
    id = Column(Integer, primary_key=True, nullable=False)
    # Surveys reference projects by this name, not by id
    name = Column(String(255), unique=True, nullable=False, index=True)
    code = Column(String(50), server_default="")
    description = Column(Text, server_default="")
    client = Column(String(255), server_default="")
    is_active = Column(Boolean, default=True, nullable=False, server_default='1')

    bindings = relationship('UserProject', back_populates='project', lazy='select')


class UserProject(Base, TimestampMixin):
    __tablename__ = 'user_projects'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    assigned_at = Column(DateTime, default=now, nullable=False)
    role_in_project = Column(String(100), nullable=True)
    # Optional PermissionDocument overriding the user's global roles for this project
    permissions = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, server_default='1')

    user = relationship('User', foreign_keys=[user_id], back_populates='project_bindings')
    project = relationship('Project', back_populates='bindings')

Index('idx_user_projects_project_active', UserProject.project_id, UserProject.is_active)


class Survey(Base):
    __tablename__ = 'survey'
    site_id = Column(String(50), primary_key=True, nullable=False)
    created_at = Column(DateTime, primary_key=True, default=now)
    session_id = Column(String(255), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    country = Column(String(255), server_default="")
    ct = Column(String(255), server_default="")
    project = Column(String(255), server_default="", index=True)
    company = Column(String(255), server_default="")
    status = Column(
        'TSSR_Status',
        Enum(SurveyStatus, values_callable=_enum_values, native_enum=False, length=20),
        default=SurveyStatus.CREATED,
        nullable=False,
        server_default=SurveyStatus.CREATED.value,
    )
    updated_at = Column(DateTime, default=now, onupdate=now)

    assignee = relationship('User', foreign_keys=[user_id])
    creator = relationship('User', foreign_keys=[creator_id])


class SurveyStatusHistory(Base):
    __tablename__ = 'survey_status_history'
    id = Column(Integer, primary_key=True, nullable=False)
    session_id = Column(String(255), ForeignKey('survey.session_id', ondelete='CASCADE'), nullable=False, index=True)
    username = Column(String(100), nullable=False, index=True)
    current_status = Column(String(50), nullable=False)
    new_status = Column(String(50), nullable=False)
    changed_at = Column(DateTime, default=now, nullable=False, index=True)
    notes = Column(Text, nullable=True)


class Notification(Base):
    __tablename__ = 'notifications'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        Enum(NotificationType, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    related_survey_id = Column(String(255), ForeignKey('survey.session_id', ondelete='SET NULL'), nullable=True)
    related_project_id = Column(Integer, ForeignKey('projects.id', ondelete='SET NULL'), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, server_default='0', index=True)
    created_at = Column(DateTime, default=now, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)


class AppConfig(Base):
    __tablename__ = 'app_config'
    id = Column(Integer, primary_key=True, nullable=False)
    key = Column(String(100), unique=True, nullable=False, server_default="")
    value = Column(Text, server_default="")
    description = Column(String(300), server_default="")
    category = Column(String(50), server_default="")
    updated_at = Column(DateTime, default=now, onupdate=now)
