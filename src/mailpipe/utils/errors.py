"""Centralized error handling for mailpipe."""

from enum import Enum
from typing import Any, Dict

from mailpipe.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


## Custom Exceptions


class MailError(Exception):
    """Base exception for all mailpipe errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise MailError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Configuration Errors


class ConfigurationError(MailError):
    """Missing endpoint, empty recipient list and other setup problems.

    Raised before any network activity is attempted.
    """

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class MissingConfigError(ConfigurationError):
    """Exception for missing configuration settings."""

    user_message = "Missing configuration settings"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Validation Errors


class ValidationError(MailError):
    """Base exception for validation-related errors."""

    category = ErrorCategory.VALIDATION
    user_message = "Invalid input"


class ParseError(ValidationError):
    """A single MIME part could not be decoded."""

    user_message = "Failed to decode message part"


## Network Errors


class NetworkError(MailError):
    """Base exception for network-related errors."""

    category = ErrorCategory.NETWORK
    user_message = "A network error occurred"


class ConnectError(NetworkError):
    """Dial or login failure. Never retried."""

    user_message = "Failed to connect to email server"


class AuthenticationError(ConnectError):
    """Exception for rejected credentials."""

    category = ErrorCategory.AUTHENTICATION
    user_message = "Invalid email or password"


class TransientNetworkError(NetworkError):
    """Dropped session; triggers one reconnect and retry."""

    user_message = "The connection was interrupted"


class NetworkTimeoutError(NetworkError):
    """Exception for network timeout errors."""

    user_message = "The connection timed out"


class SessionUnavailableError(NetworkError):
    """An operation needed a live IMAP session and none exists."""

    user_message = "Not connected to the mailbox server"


class ProtocolError(NetworkError):
    """Server rejected a command or answered unexpectedly."""

    user_message = "The mail server rejected the request"


class IMAPError(ProtocolError):
    """Exception for IMAP protocol errors."""

    user_message = "IMAP operation failed"


class SMTPError(ProtocolError):
    """Exception for SMTP protocol errors."""

    user_message = "Failed to send email"


class PartialFetchFailure(NetworkError):
    """One message of a batch could not be fetched."""

    user_message = "Failed to fetch message"


## Error Handler


class ErrorHandler:
    """Centralized error handling and logging."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        """Handle errors with logging and user-friendly message."""
        if isinstance(error, MailError):
            _get_logger().error(f"{context}: {error.message}", extra=error.details)
            if log_traceback:
                _get_logger().exception(error)
            return error.to_dict()
        else:
            _get_logger().error(f"{context}: {str(error)}")
            if log_traceback:
                _get_logger().exception(error)
            return {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, MailError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
