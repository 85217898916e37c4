"""MailClient - the public facade over the IMAP and SMTP pipelines."""

from typing import Any, List, Optional, Sequence, Union

from mailpipe.core.email.imap.connection import IMAPConnection
from mailpipe.core.email.imap.fetch_pool import FetchPool
from mailpipe.core.email.imap.mutations import FlagMutator
from mailpipe.core.email.imap.protocol import IMAPProtocol
from mailpipe.core.email.realtime import RealtimePoller
from mailpipe.core.email.search import Filter
from mailpipe.core.email.services.fetch import EmailFetchService
from mailpipe.core.email.smtp.composer import SendOptions
from mailpipe.core.email.smtp.pipeline import SendPipeline
from mailpipe.core.email.smtp.resolver import ConnectionType
from mailpipe.core.email.transport import Dialer
from mailpipe.core.models.email import Email
from mailpipe.core.models.mailbox import MailboxStatus
from mailpipe.utils.config import AccountConfig, AppConfig
from mailpipe.utils.logging import get_logger

logger = get_logger(__name__)


class MailClient:
    """One account: an IMAP session for retrieval and per-call SMTP sends.

    Usage:
        >>> async with MailClient("me@example.com", "secret",
        ...                       imap_server="imap.example.com",
        ...                       smtp_server="smtp.example.com:587") as client:
        ...     for email in await client.get(limit=10, sort_desc=True):
        ...         print(email.subject)
        ...     await client.send(["you@example.com"], "Hello", "Hi there")
    """

    def __init__(
        self,
        address: str,
        password: str,
        imap_server: Optional[str] = None,
        smtp_server: Optional[str] = None,
        smtp_connection_type: Union[ConnectionType, str] = ConnectionType.AUTO,
        dialer: Optional[Dialer] = None,
        settings: Optional[AccountConfig] = None,
    ):
        """Initialise mail client.

        Args:
            address: Account address, used as IMAP login, AUTH identity and sender
            password: Account secret
            imap_server: IMAP endpoint host[:port]; required for retrieval
            smtp_server: SMTP endpoint host[:port]; required for sending
            smtp_connection_type: SMTP transport policy
            dialer: Protocol client factory (proxying, TLS policy, tests)
            settings: Tuning values (concurrency, reconnect delay, timeouts)
        """
        settings = settings or AccountConfig()
        self.address = address
        self.dialer = dialer or Dialer(
            timeout=settings.network_timeout, tls_verify=settings.tls_verify
        )

        self.connection = IMAPConnection(
            address,
            password,
            imap_server,
            dialer=self.dialer,
            reconnect_delay=settings.reconnect_delay,
        )
        self.protocol = IMAPProtocol(self.connection)
        self.mutator = FlagMutator(self.protocol)
        self.fetch_service = EmailFetchService(
            self.protocol,
            FetchPool(self.protocol, concurrency=settings.fetch_concurrency),
            self.mutator,
        )
        self.sender = SendPipeline(
            address,
            password,
            smtp_server,
            connection_type=ConnectionType(smtp_connection_type),
            dialer=self.dialer,
        )

    @classmethod
    def from_config(cls, config: AppConfig, dialer: Optional[Dialer] = None) -> "MailClient":
        """Build a client from the persisted application configuration."""
        account = config.account
        return cls(
            account.email,
            account.password.get_secret_value(),
            imap_server=account.imap_server or None,
            smtp_server=account.smtp_server or None,
            smtp_connection_type=account.smtp_connection_type,
            dialer=dialer,
            settings=account,
        )

    async def connect(self) -> None:
        """Open and authenticate the IMAP session."""
        await self.connection.connect()

    async def select_mailbox(self, name: str, read_only: bool = False) -> MailboxStatus:
        """Select a mailbox and return its status."""
        return await self.protocol.select_mailbox(name, read_only=read_only)

    async def get(self, filter: Optional[Filter] = None, **options: Any) -> List[Email]:
        """Retrieve emails.

        Options override fields of ``filter``: ``limit``, ``all``,
        ``mark_read``, ``sort_desc``, ``mailbox``, ``since``, ``before``.
        A dropped session is reconnected once and the retrieval re-run.
        """
        search_filter = (filter or Filter()).with_options(**options)
        self.connection.require_session()
        return await self.connection.call_with_reconnect(
            self.fetch_service.get, search_filter
        )

    def get_realtime(
        self, interval: float, filter: Optional[Filter] = None, **options: Any
    ) -> RealtimePoller:
        """Start polling for unread emails every ``interval`` seconds.

        Must be called from a running event loop. Read emails from the
        returned poller's queue or with ``async for``.
        """
        search_filter = (filter or Filter()).with_options(**options)
        return RealtimePoller(self.get, interval, search_filter).start()

    async def delete(self, *uids: int) -> None:
        """Flag messages \\Deleted (no expunge)."""
        await self.mutator.delete(list(uids))

    async def mark_read(self, *uids: int) -> None:
        await self.mutator.mark_read(list(uids))

    async def mark_unread(self, *uids: int) -> None:
        await self.mutator.mark_unread(list(uids))

    async def send(
        self,
        to: Sequence[str],
        subject: str,
        body: Union[str, bytes],
        options: Optional[SendOptions] = None,
    ) -> None:
        """Send a single-part message over a fresh SMTP connection."""
        await self.sender.send(to, subject, body, options)

    async def close(self) -> None:
        """Log out of the IMAP session."""
        await self.connection.close()

    ## Context Manager Helpers

    async def __aenter__(self):
        if self.connection.server:
            await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
