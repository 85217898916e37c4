"""
Tests for the error hierarchy and ErrorHandler
"""
from mailpipe.utils.errors import (
    AuthenticationError,
    ConnectError,
    ErrorCategory,
    ErrorHandler,
    IMAPError,
    MailError,
    NetworkError,
    ParseError,
    PartialFetchFailure,
    ProtocolError,
    SMTPError,
    ValidationError,
    format_error_message,
)


class TestErrorHierarchy:
    """Tests for error classes"""

    def test_protocol_errors_are_network_errors(self):
        assert issubclass(IMAPError, ProtocolError)
        assert issubclass(SMTPError, ProtocolError)
        assert issubclass(ProtocolError, NetworkError)
        assert issubclass(PartialFetchFailure, NetworkError)

    def test_authentication_category(self):
        error = AuthenticationError("rejected")

        assert isinstance(error, ConnectError)
        assert error.category is ErrorCategory.AUTHENTICATION

    def test_parse_error_is_validation(self):
        assert issubclass(ParseError, ValidationError)
        assert ParseError().category is ErrorCategory.VALIDATION

    def test_default_message(self):
        error = PartialFetchFailure()

        assert error.message == PartialFetchFailure.user_message

    def test_to_dict(self):
        data = SMTPError("refused", details={"code": 550}).to_dict()

        assert data["error_type"] == "SMTPError"
        assert data["message"] == "refused"
        assert data["details"] == {"code": 550}


class TestErrorHandler:
    """Tests for ErrorHandler.handle and format_error_message"""

    def test_handle_mail_error(self):
        result = ErrorHandler.handle(IMAPError("bad"), context="fetch", log_traceback=False)

        assert result["error_type"] == "IMAPError"

    def test_handle_unknown_error(self):
        result = ErrorHandler.handle(RuntimeError("oops"), context="poll", log_traceback=False)

        assert result["error_type"] == "UnknownError"
        assert result["details"] == {"context": "poll"}

    def test_format_error_message(self):
        assert format_error_message(MailError("visible")) == "visible"
        assert "unexpected" in format_error_message(RuntimeError("hidden"))
