"""IMAP constants and configuration values."""


class IMAPResponse:
    """Standard IMAP response codes."""

    OK = "OK"
    NO = "NO"
    BAD = "BAD"


class Timeouts:
    """Timeout values for IMAP operations (in seconds)."""

    IMAP_CONNECT = 30.0  # Greeting after TCP/TLS connect
    IMAP_LOGIN = 30.0  # Login operation timeout
    IMAP_SELECT = 10.0  # SELECT/EXAMINE timeout
    IMAP_SEARCH = 30.0  # SEARCH operation timeout
    IMAP_FETCH = 30.0  # FETCH operation timeout (per message)
    IMAP_STORE = 10.0  # STORE operation timeout
    IMAP_EXPUNGE = 10.0  # EXPUNGE operation timeout
    IMAP_LOGOUT = 5.0  # LOGOUT timeout on close


class IMAPPorts:
    """Standard IMAP port numbers."""

    IMAPS = 993  # Implicit TLS, the only transport supported


class IMAPFolders:
    """Standard IMAP folder names."""

    INBOX = "INBOX"


class IMAPFlags:
    """Standard IMAP flags."""

    SEEN = "\\Seen"  # Read/unread status
    FLAGGED = "\\Flagged"  # Starred/flagged
    DELETED = "\\Deleted"  # Marked for deletion
    ANSWERED = "\\Answered"  # Has been replied to
    DRAFT = "\\Draft"  # Is a draft
    RECENT = "\\Recent"  # Recently arrived


class FetchLimits:
    """Defaults for the concurrent fetch pool."""

    CONCURRENCY = 10  # Simultaneous per-message fetch tasks
    REALTIME_BUFFER = 10  # Emails buffered by the realtime poller


# Substrings of an error message that mark a dropped session
TRANSIENT_MARKERS = ("closed", "broken pipe", "connection reset", "connection lost")
