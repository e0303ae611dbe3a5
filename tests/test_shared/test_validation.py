"""Tests for shared validation utilities."""
import pytest
from shared.validation import Validator, ValidationError
from shared.enums import SurveyStatus, StatusTransition
from shared.errors import WorkflowError


class TestValidator:
    """Test validation utilities."""

    def test_validation_error_is_workflow_error(self):
        err = ValidationError("bad input")
        assert isinstance(err, WorkflowError)
        assert err.code == 'VALIDATION_ERROR'
        assert err.status_code == 400
        assert err.to_dict() == {'error': 'bad input', 'code': 'VALIDATION_ERROR'}

    def test_validate_required_success(self):
        assert Validator.validate_required("test", "test_field") == "test"
        assert Validator.validate_required(123, "test_field") == 123

    def test_validate_required_failure(self):
        """Test required field validation failures."""
        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required("", "test_field")

        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required(None, "test_field")

        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required("   ", "test_field")

    def test_validate_string_length(self):
        assert Validator.validate_string_length("  test  ", "field", 1, 10) == "test"

        with pytest.raises(ValidationError, match="field must be at least 5 characters"):
            Validator.validate_string_length("test", "field", 5, 10)

        with pytest.raises(ValidationError, match="field must be no more than 3 characters"):
            Validator.validate_string_length("testing", "field", 1, 3)

        with pytest.raises(ValidationError, match="field must be a string"):
            Validator.validate_string_length(42, "field")

    def test_validate_email(self):
        """Test email validation."""
        for email in ["test@example.com", "user.name+tag@example.co.uk"]:
            assert Validator.validate_email(email) == email

        for email in ["invalid-email", "@example.com", "test@", "test..test@example.com"]:
            with pytest.raises(ValidationError, match="Invalid email format"):
                Validator.validate_email(email)

    def test_validate_id(self):
        assert Validator.validate_id(5, "user_id") == 5
        assert Validator.validate_id("7", "user_id") == 7

        with pytest.raises(ValidationError, match="user_id is required"):
            Validator.validate_id(None, "user_id")
        with pytest.raises(ValidationError, match="user_id is required"):
            Validator.validate_id(True, "user_id")
        with pytest.raises(ValidationError, match="must be an integer"):
            Validator.validate_id("abc", "user_id")
        with pytest.raises(ValidationError, match="must be a positive integer"):
            Validator.validate_id(0, "user_id")

    def test_validate_role_name(self):
        assert Validator.validate_role_name("Survey_Engineer") == "survey_engineer"

        for name in ["", "1admin", "site engineer", "a" * 51]:
            with pytest.raises(ValidationError):
                Validator.validate_role_name(name)

    def test_validate_choice(self):
        assert Validator.validate_choice("a", "field", ["a", "b"]) == "a"
        with pytest.raises(ValidationError, match="field must be one of: a, b"):
            Validator.validate_choice("c", "field", ["a", "b"])


class TestStatusParsing:
    """Status strings from the stored and workflow vocabularies."""

    @pytest.mark.parametrize("raw,expected", [
        ("created", SurveyStatus.CREATED),
        ("submitted", SurveyStatus.SUBMITTED),
        ("under_revision", SurveyStatus.UNDER_REVISION),
        ("rework", SurveyStatus.REWORK),
        ("approved", SurveyStatus.APPROVED),
        ("review", SurveyStatus.UNDER_REVISION),
        ("done", SurveyStatus.APPROVED),
        (" Done ", SurveyStatus.APPROVED),
    ])
    def test_parse_status(self, raw, expected):
        assert Validator.parse_status(raw) is expected

    def test_parse_status_passes_enum_through(self):
        assert Validator.parse_status(SurveyStatus.REWORK) is SurveyStatus.REWORK

    def test_parse_status_rejects_unknown(self):
        with pytest.raises(ValidationError, match="status must be one of"):
            Validator.parse_status("archived")
        with pytest.raises(ValidationError, match="status is required"):
            Validator.parse_status(None)

    def test_parse_transition_target(self):
        assert Validator.parse_transition_target("under_revision_to_approved") == (
            StatusTransition.UNDER_REVISION_TO_APPROVED, None
        )
        assert Validator.parse_transition_target("review") == (None, SurveyStatus.UNDER_REVISION)

        with pytest.raises(ValidationError):
            Validator.parse_transition_target("created_to_approved")


class TestSanitizeHtml:

    def test_plain_text_untouched(self):
        assert Validator.sanitize_html("Tower site, rooftop") == "Tower site, rooftop"

    def test_script_tags_stripped(self):
        cleaned = Validator.sanitize_html("<script>alert(1)</script><strong>ok</strong>")
        assert "<script>" not in cleaned
        assert "<strong>ok</strong>" in cleaned

    def test_project_data(self):
        data = Validator.validate_project_data({
            'name': '  North Rollout ',
            'code': 'NR-1',
            'client': '<b>Operator</b>',
        })
        assert data['name'] == 'North Rollout'
        assert data['code'] == 'NR-1'
        assert data['client'] == 'Operator'

        with pytest.raises(ValidationError, match="Project name"):
            Validator.validate_project_data({'name': ''})
