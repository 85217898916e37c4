"""mailpipe - asyncio mail client core for IMAP retrieval and SMTP delivery."""

from .client import MailClient
from .core.email.search import Filter
from .core.email.smtp.composer import SendOptions
from .core.email.smtp.resolver import ConnectionType
from .core.email.transport import Dialer
from .core.models.email import Attachment, Email
from .core.models.mailbox import MailboxStatus

__version__ = "0.1.0"

__all__ = [
    "Attachment",
    "ConnectionType",
    "Dialer",
    "Email",
    "Filter",
    "MailClient",
    "MailboxStatus",
    "SendOptions",
]
