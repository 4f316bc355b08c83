"""
Unit tests for the exception hierarchy and error descriptions.
"""

from sqlalchemy.exc import IntegrityError

from chorequest.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
)
from chorequest.modules.shared.exceptions import (
    InvalidTimezoneError,
    MissingQuestActorError,
    UnknownRecurrencePatternError,
    ValidationError,
    describe_error,
)
from tests.factories import store_error


class TestDomainExceptions:
    def test_validation_error_shape(self):
        exc = ValidationError("week_start_day", "must be between 0 and 6")

        assert exc.message == "Validation error for week_start_day: must be between 0 and 6"
        assert exc.error_code == "VALIDATION_WEEK_START_DAY"
        assert exc.severity is ErrorSeverity.INFO
        assert str(exc).startswith("[VALIDATION_WEEK_START_DAY]")

    def test_timezone_and_pattern_errors_are_validation_errors(self):
        assert isinstance(InvalidTimezoneError("Mars/Base"), ValidationError)
        assert isinstance(UnknownRecurrencePatternError("HOURLY"), ValidationError)

    def test_missing_actor_to_dict(self):
        data = MissingQuestActorError("fam-1").to_dict()

        assert data["error_type"] == "MissingQuestActorError"
        assert data["error_code"] == "MISSING_QUEST_ACTOR"
        assert data["details"] == {"family_id": "fam-1"}
        assert data["severity"] == "warning"
        assert data["is_retryable"] is False


class TestInfrastructureExceptions:
    def test_database_error_is_retryable(self):
        exc = DatabaseError("runner startup", OSError("connection refused"))

        assert exc.is_retryable is True
        assert exc.message == "Database error during runner startup: connection refused"
        assert exc.details["error_type"] == "OSError"

    def test_configuration_error_is_critical(self):
        exc = ConfigurationError("recurring_quests.unresolved_statuses", "unknown status")

        assert exc.severity is ErrorSeverity.CRITICAL
        assert exc.config_key == "recurring_quests.unresolved_statuses"


class TestDescribeError:
    def test_domain_exception_uses_bare_message(self):
        assert describe_error(InvalidTimezoneError("Nowhere")) == (
            "Validation error for timezone: Invalid timezone: Nowhere"
        )

    def test_driver_error_drops_the_statement(self):
        assert describe_error(store_error("disk full")) == "disk full"

    def test_integrity_error_uses_driver_message(self):
        exc = IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed"))

        assert describe_error(exc) == "UNIQUE constraint failed"

    def test_plain_exception(self):
        assert describe_error(RuntimeError("boom")) == "boom"

    def test_empty_message_falls_back_to_type_name(self):
        assert describe_error(KeyError()) == "KeyError"
