from flask_sqlalchemy import SQLAlchemy
import logging
from shared.models import (
    Base, User, Role, UserRole, Project, UserProject, Survey, SurveyStatusHistory,
    Notification, AppConfig, now
)
from shared.enums import SurveyStatus, NotificationType

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)

__all__ = [
    'db', 'Base', 'User', 'Role', 'UserRole', 'Project', 'UserProject', 'Survey',
    'SurveyStatusHistory', 'Notification', 'AppConfig', 'SurveyStatus', 'NotificationType', 'now',
]
