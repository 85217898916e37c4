"""Email fetch service - orchestrates one retrieval"""

import time
from typing import List

from mailpipe.core.email.imap.constants import IMAPFlags
from mailpipe.core.email.imap.fetch_pool import FetchPool
from mailpipe.core.email.imap.mutations import FlagMutator
from mailpipe.core.email.imap.protocol import IMAPProtocol
from mailpipe.core.email.search import Filter, build_criteria, select_uids
from mailpipe.core.models.email import Email
from mailpipe.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


class EmailFetchService:
    """Select, search, fetch and optionally mark read, in a single attempt.

    Reconnect-and-retry is applied by the caller around ``get``.
    """

    def __init__(self, protocol: IMAPProtocol, pool: FetchPool, mutator: FlagMutator):
        """Initialise email fetch service.

        Args:
            protocol: IMAPProtocol instance for IMAP operations
            pool: FetchPool used for per-message fetches
            mutator: FlagMutator used when the filter asks for mark_read
        """
        self._protocol = protocol
        self._pool = pool
        self._mutator = mutator

    @async_log_call
    async def get(self, search_filter: Filter) -> List[Email]:
        """Retrieve emails matching ``search_filter``.

        Returns:
            Emails in selection order; failed fetches are left out
        """
        self._protocol.connection.require_session()
        start_time = time.time()

        status = await self._protocol.select_mailbox(search_filter.mailbox)
        if status.exists == 0:
            logger.info("Mailbox is empty", extra={"mailbox": search_filter.mailbox})
            return []

        criteria = build_criteria(search_filter)
        uids = select_uids(await self._protocol.search_uids(criteria), search_filter)
        if not uids:
            logger.info(
                "No emails matched",
                extra={"mailbox": search_filter.mailbox, "criteria": " ".join(criteria)},
            )
            return []

        logger.info(
            f"Found {len(uids)} emails to fetch",
            extra={"mailbox": search_filter.mailbox, "count": len(uids)},
        )

        emails = await self._pool.fetch_all(uids)

        if search_filter.mark_read:
            unread = [e.uid for e in emails if IMAPFlags.SEEN not in e.flags]
            if unread:
                await self._mutator.mark_read(unread)

        logger.info(
            "Email fetch completed",
            extra={
                "mailbox": search_filter.mailbox,
                "fetched": len(emails),
                "failed": len(uids) - len(emails),
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )
        return emails
