"""SMTP constants and configuration values."""


class SMTPResponse:
    """Standard SMTP response codes."""

    # 2xx Success
    OK = 250  # Requested mail action okay, completed
    USER_NOT_LOCAL = 251  # User not local; will forward
    CANNOT_VRFY = 252  # Cannot VRFY user, but will accept message

    # 3xx Intermediate
    START_MAIL = 354  # Start mail input; end with <CRLF>.<CRLF>

    @staticmethod
    def is_success(code: int) -> bool:
        """Check whether a reply code is a 2xx completion.

        Args:
            code: SMTP response code

        Returns:
            True for 200-299
        """
        return 200 <= code < 300


class Timeouts:
    """Timeout values for SMTP operations (in seconds)."""

    SMTP_CONNECT = 30.0  # Initial connection timeout
    SMTP_STARTTLS = 30.0  # STARTTLS handshake timeout
    SMTP_QUIT = 5.0  # QUIT operation timeout


class SMTPPorts:
    """Standard SMTP port numbers."""

    SUBMISSION_SSL = 465  # Implicit TLS/SSL
    SUBMISSION = 587  # STARTTLS
    SUBMISSION_ALT = 2525  # Unofficial STARTTLS alternative
    SMTP = 25  # Plain SMTP, default when no port is given

    @classmethod
    def offers_starttls(cls, port: int) -> bool:
        """Check if port conventionally offers STARTTLS.

        Args:
            port: SMTP port number

        Returns:
            True for the submission ports
        """
        return port in (cls.SUBMISSION, cls.SUBMISSION_ALT)

    @classmethod
    def is_implicit_ssl(cls, port: int) -> bool:
        """Check if port uses implicit SSL.

        Args:
            port: SMTP port number

        Returns:
            True if implicit SSL, False otherwise
        """
        return port == cls.SUBMISSION_SSL
