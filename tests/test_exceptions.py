"""Tests for cycle planner exceptions."""

import pytest


class TestPlannerExceptions:
    """Test custom exception types."""

    def test_base_error_message(self):
        """Test base PlannerError with message only."""
        from cycle_planner.exceptions import PlannerError

        error = PlannerError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.remediation is None
        assert error.details is None
        assert str(error) == "Something went wrong"

    def test_base_error_with_remediation_and_details(self):
        """Test PlannerError renders details and remediation."""
        from cycle_planner.exceptions import PlannerError

        error = PlannerError(
            "Something went wrong",
            remediation="Try again later",
            details="Connection timeout after 30s"
        )
        assert "Details: Connection timeout" in str(error)
        assert "To fix: Try again later" in str(error)

    def test_config_error(self):
        """Test ConfigError with config key."""
        from cycle_planner.exceptions import ConfigError

        error = ConfigError("Invalid configuration", config_key="planning.max_depth")
        assert error.config_key == "planning.max_depth"
        assert "planning.max_depth" in str(error)
        assert "config.yaml" in str(error)

    def test_credential_error(self):
        """Test CredentialError with credential type."""
        from cycle_planner.exceptions import CredentialError

        error = CredentialError("Invalid API token", credential_type="Jira")
        assert error.credential_type == "Jira"
        assert "Jira" in str(error)

    def test_network_error(self):
        """Test NetworkError with service and status."""
        from cycle_planner.exceptions import NetworkError

        error = NetworkError("Server error", service="Jira", status_code=503)
        assert error.service == "Jira"
        assert error.status_code == 503
        assert "internet connection" in str(error).lower()

    def test_validation_error(self):
        """Test ValidationError with field and format."""
        from cycle_planner.exceptions import ValidationError

        error = ValidationError("Invalid cycle", field="cycle", expected_format="q126c1")
        assert error.field == "cycle"
        assert error.expected_format == "q126c1"
        assert "format" in str(error)

    def test_root_fetch_error(self):
        """Test RootFetchError keeps the key."""
        from cycle_planner.exceptions import RootFetchError

        error = RootFetchError("Could not fetch root item RD-1", key="RD-1")
        assert error.key == "RD-1"

    def test_query_error(self):
        """Test QueryError keeps the query."""
        from cycle_planner.exceptions import QueryError

        error = QueryError("Bad JQL", query="parent = X")
        assert error.query == "parent = X"


class TestErrorCodes:
    """Test error code mapping."""

    def test_get_error_code_known_type(self):
        """Test getting error code for known types."""
        from cycle_planner.exceptions import (
            ConfigError, CredentialError, NetworkError, PlannerError, QueryError,
            get_error_code
        )

        assert get_error_code(ConfigError("test")) == 10
        assert get_error_code(CredentialError("test")) == 11
        assert get_error_code(NetworkError("test")) == 13
        assert get_error_code(QueryError("test")) == 15
        assert get_error_code(PlannerError("test")) == 1

    @pytest.mark.parametrize("error", [ValueError("test"), RuntimeError("test")])
    def test_get_error_code_unknown_type(self, error):
        """Test getting error code for unknown types."""
        from cycle_planner.exceptions import get_error_code

        assert get_error_code(error) == 1
