"""Realtime retrieval - periodic polling into a bounded queue."""

import asyncio
from typing import Awaitable, Callable, List, Optional

from mailpipe.core.email.imap.constants import FetchLimits
from mailpipe.core.email.search import Filter
from mailpipe.core.models.email import Email
from mailpipe.utils.errors import ErrorHandler, ValidationError
from mailpipe.utils.logging import get_logger

logger = get_logger(__name__)

Retrieve = Callable[[Filter], Awaitable[List[Email]]]


class RealtimePoller:
    """Polls for unread emails every ``interval`` seconds.

    Emails are delivered through ``queue`` (or by iterating the poller with
    ``async for``). When the queue is full the poll loop waits for the
    consumer. Errors are logged and the loop carries on; the loop runs until
    its task is cancelled.
    """

    def __init__(
        self,
        retrieve: Retrieve,
        interval: float,
        search_filter: Optional[Filter] = None,
        buffer_size: int = FetchLimits.REALTIME_BUFFER,
    ):
        if interval < 0:
            raise ValidationError(
                "Polling interval cannot be negative", details={"interval": interval}
            )

        self._retrieve = retrieve
        self.interval = interval
        # Only unread emails, or every poll would redeliver the mailbox
        self.search_filter = (search_filter or Filter()).with_options(all=False)
        self.queue: "asyncio.Queue[Email]" = asyncio.Queue(maxsize=buffer_size)
        self.task: Optional["asyncio.Task[None]"] = None
        self.polls = 0
        self.errors = 0

    def start(self) -> "RealtimePoller":
        """Schedule the poll loop on the running event loop."""
        if self.task is None:
            self.task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def poll_once(self) -> int:
        """Run one retrieval and queue its emails. Returns how many were queued."""
        self.polls += 1
        try:
            emails = await self._retrieve(self.search_filter)
        except Exception as e:
            self.errors += 1
            ErrorHandler.handle(e, context="Realtime poll failed", log_traceback=False)
            return 0

        for email in emails:
            await self.queue.put(email)

        if emails:
            logger.debug("Queued new emails", extra={"count": len(emails)})
        return len(emails)

    async def _run(self) -> None:
        logger.info(
            "Realtime polling started",
            extra={"interval": self.interval, "mailbox": self.search_filter.mailbox},
        )
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Email:
        return await self.queue.get()
