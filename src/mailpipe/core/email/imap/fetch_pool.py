"""Concurrent per-message fetch over the shared IMAP session."""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence, Union

from mailpipe.core.email.parser import EmailParser
from mailpipe.core.models.email import Email
from mailpipe.utils.errors import (
    NetworkError,
    ParseError,
    PartialFetchFailure,
    SessionUnavailableError,
)
from mailpipe.utils.logging import get_logger

from .connection import is_transient_error
from .constants import FetchLimits
from .protocol import IMAPProtocol

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchFailure:
    """Outcome of a fetch task that produced no Email."""

    uid: int
    error: Exception


FetchResult = Union[Email, FetchFailure]


class FetchPool:
    """Fetches many UIDs with at most ``concurrency`` tasks in flight.

    Round trips still serialise on the connection lock; the pool bounds how
    many messages are in progress at once.
    """

    def __init__(self, protocol: IMAPProtocol, concurrency: int = FetchLimits.CONCURRENCY):
        if concurrency < 1:
            raise ValueError("Fetch concurrency must be at least 1")
        self.protocol = protocol
        self.concurrency = concurrency

    async def fetch_one(self, uid: int) -> Email:
        """Fetch envelope then body of one message.

        Raises:
            PartialFetchFailure: If the server returned no data for ``uid``
        """
        envelope = await self.protocol.fetch_envelope(uid)
        if envelope is None:
            raise PartialFetchFailure(
                "Empty envelope response", details={"uid": uid, "stage": "envelope"}
            )

        raw = await self.protocol.fetch_body(uid)
        if raw is None:
            raise PartialFetchFailure(
                "Message body missing", details={"uid": uid, "stage": "body"}
            )

        return EmailParser.build_email(uid, envelope.header, raw, envelope.flags)

    async def _run(self, uid: int, semaphore: asyncio.Semaphore) -> FetchResult:
        async with semaphore:
            try:
                return await self.fetch_one(uid)
            except SessionUnavailableError:
                raise
            except (NetworkError, ParseError) as e:
                return FetchFailure(uid=uid, error=e)

    async def fetch_all(self, uids: Sequence[int]) -> List[Email]:
        """Fetch every UID and return the Emails in ``uids`` order.

        Failed UIDs are left out. A transient failure in any task is raised
        once all tasks have finished.
        """
        if not uids:
            return []

        start_time = time.time()
        semaphore = asyncio.Semaphore(self.concurrency)
        ordered = list(dict.fromkeys(uids))

        outcomes = await asyncio.gather(
            *(self._run(uid, semaphore) for uid in ordered), return_exceptions=True
        )
        results: Dict[int, FetchResult] = {}
        for uid, outcome in zip(ordered, outcomes):
            if isinstance(outcome, BaseException):
                raise outcome
            results[uid] = outcome

        failures = [r for r in results.values() if isinstance(r, FetchFailure)]
        for failure in failures:
            if is_transient_error(failure.error):
                raise failure.error

        if failures:
            logger.warning(
                "Some messages could not be fetched",
                extra={
                    "missing_uids": [f.uid for f in failures],
                    "failure_count": len(failures),
                },
            )

        emails = [r for r in results.values() if isinstance(r, Email)]
        logger.debug(
            "Fetched messages",
            extra={
                "requested": len(ordered),
                "received": len(emails),
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )
        return emails
