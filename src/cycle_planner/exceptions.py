"""
Cycle Planner Exceptions

Custom exception types carrying remediation hints for the CLI.
"""

from typing import Optional


class PlannerError(Exception):
    """Base exception for all cycle planner errors."""

    def __init__(
        self,
        message: str,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            remediation: Suggested fix for the user
            details: Technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.remediation = remediation
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.remediation:
            parts.append(f"To fix: {self.remediation}")
        return "\n".join(parts)


class ConfigError(PlannerError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.config_key = config_key
        if not remediation and config_key:
            remediation = f"Check your configuration for '{config_key}' in config.yaml or .env"
        super().__init__(message, remediation, details)


class CredentialError(PlannerError):
    """Rejected or missing API credentials."""

    def __init__(
        self,
        message: str,
        credential_type: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.credential_type = credential_type
        if not remediation and credential_type:
            remediation = f"Verify your {credential_type} credentials are correct and have required permissions"
        super().__init__(message, remediation, details)


class NetworkError(PlannerError):
    """Network-related errors (timeouts, connection issues, 5xx responses)."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.service = service
        self.status_code = status_code
        if not remediation:
            remediation = "Check your internet connection and try again. If the issue persists, the service may be temporarily unavailable."
        super().__init__(message, remediation, details)


class QueryError(PlannerError):
    """A single issue-tracker query failed (bad JQL, not found, malformed response)."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.query = query
        super().__init__(message, remediation, details)


class RootFetchError(PlannerError):
    """A top-level work item could not be fetched at all."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.key = key
        if not remediation and key:
            remediation = f"Check that {key} exists and that your Jira user can browse it"
        super().__init__(message, remediation, details)


class ValidationError(PlannerError):
    """Input validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected_format: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.field = field
        self.expected_format = expected_format
        if not remediation and field and expected_format:
            remediation = f"The {field} should be in format: {expected_format}"
        super().__init__(message, remediation, details)


# Error code mapping for CLI exit codes
ERROR_CODES = {
    ConfigError: 10,
    CredentialError: 11,
    NetworkError: 13,
    ValidationError: 14,
    QueryError: 15,
    RootFetchError: 16,
    PlannerError: 1,
}


def get_error_code(error: Exception) -> int:
    """Get the exit code for an error type."""
    for error_type, code in ERROR_CODES.items():
        if isinstance(error, error_type):
            return code
    return 1
