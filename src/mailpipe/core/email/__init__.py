"""Email protocol handling for IMAP retrieval, SMTP delivery and parsing.

- IMAP: Search, concurrent fetch, flag mutation, realtime polling
- SMTP: Transport negotiation, composition and the send transaction
- Parser: Raw RFC 822 bytes into Email objects

Most callers should use ``mailpipe.MailClient``, which wires these together.

Notes
-----
- All network operations are asynchronous and require 'await'
- A single IMAP session is shared; round trips are serialised on it
- A dropped IMAP session is reconnected once per retrieval
- Malformed MIME parts are logged and skipped
"""

from .parser import EmailParser
from .search import Filter
from .transport import Dialer

__all__ = [
    "Dialer",
    "EmailParser",
    "Filter",
]
