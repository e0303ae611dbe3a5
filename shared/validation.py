"""Input validation utilities."""
import re
import bleach
from shared.enums import SurveyStatus, StatusTransition, LEGACY_STATUS_ALIASES
from shared.errors import ValidationError


class Validator:
    """Input validation utilities."""

    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9]+([._%+-][a-zA-Z0-9]+)*@([a-zA-Z0-9]+([.-][a-zA-Z0-9]+)*\.)+[a-zA-Z]{2,}$')
    # Role names are stored lowercase with underscores (e.g. survey_engineer)
    ROLE_NAME_PATTERN = re.compile(r'^[a-z][a-z0-9_]{0,49}$')

    @staticmethod
    def validate_required(value, field_name):
        """Validate that a required field is not empty."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field_name} is required")
        return value

    @staticmethod
    def validate_string_length(value, field_name, min_length=0, max_length=None):
        """Validate string length constraints."""
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")

        value = value.strip()
        if len(value) < min_length:
            raise ValidationError(f"{field_name} must be at least {min_length} characters")

        if max_length and len(value) > max_length:
            raise ValidationError(f"{field_name} must be no more than {max_length} characters")

        return value

    @staticmethod
    def validate_email(email):
        """Validate email format."""
        email = email.strip()
        if not Validator.EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        return email

    @staticmethod
    def validate_id(value, field_name):
        """Validate a positive integer identifier (ints and numeric strings accepted)."""
        if value is None or isinstance(value, bool):
            raise ValidationError(f"{field_name} is required")
        try:
            id_val = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field_name} must be an integer")
        if id_val < 1:
            raise ValidationError(f"{field_name} must be a positive integer")
        return id_val

    @staticmethod
    def validate_role_name(name):
        name = Validator.validate_required(name, 'Role name')
        name = Validator.validate_string_length(name, 'Role name', 1, 50).lower()
        if not Validator.ROLE_NAME_PATTERN.match(name):
            raise ValidationError("Role name must start with a letter and contain only lowercase letters, digits and underscores")
        return name

    @staticmethod
    def validate_choice(value, field_name, valid_choices):
        """Validate that value is in list of valid choices."""
        if value not in valid_choices:
            raise ValidationError(f"{field_name} must be one of: {', '.join(str(c) for c in valid_choices)}")
        return value

    @staticmethod
    def parse_status(value, field_name='status'):
        """Map a status string from either vocabulary to a canonical SurveyStatus.

        Accepts the canonical workflow values as well as the legacy stored
        values ``review`` and ``done``.
        """
        if isinstance(value, SurveyStatus):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field_name} is required")
        normalized = value.strip().lower()
        if normalized in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[normalized]
        try:
            return SurveyStatus(normalized)
        except ValueError:
            choices = [s.value for s in SurveyStatus] + sorted(LEGACY_STATUS_ALIASES)
            raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")

    @staticmethod
    def parse_transition_target(value, field_name='status'):
        """Parse a requested target that may be a status or a transition name.

        Returns:
            tuple: (StatusTransition or None, SurveyStatus or None). Exactly one is set.
        """
        if isinstance(value, str):
            try:
                return StatusTransition(value.strip().lower()), None
            except ValueError:
                pass
        return None, Validator.parse_status(value, field_name)

    @staticmethod
    def sanitize_html(text):
        """Secure HTML sanitization using bleach library.

        Plain text (no tags or entities) is returned untouched.
        """
        if not text:
            return text

        if '<' not in text and '>' not in text and '&' not in text:
            return text

        allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']
        allowed_attributes = {}

        return bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)

    @staticmethod
    def validate_project_data(data):
        """Validate project data."""
        validated = {}

        validated['name'] = Validator.validate_required(
            Validator.validate_string_length(data.get('name', ''), 'Project name', 1, 255),
            'Project name'
        )

        if 'code' in data and data['code'] is not None:
            validated['code'] = Validator.validate_string_length(data['code'], 'Project code', 0, 50)

        if 'description' in data and data['description'] is not None:
            validated['description'] = Validator.sanitize_html(
                Validator.validate_string_length(data['description'], 'Project description', 0, 1000)
            )

        if 'client' in data and data['client'] is not None:
            validated['client'] = Validator.sanitize_html(
                Validator.validate_string_length(data['client'], 'Client', 0, 255)
            )

        return validated
