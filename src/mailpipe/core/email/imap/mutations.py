"""Flag mutations - batched \\Deleted and \\Seen changes."""

from typing import Iterable, List, Sequence

from mailpipe.utils.errors import ValidationError
from mailpipe.utils.logging import get_logger

from .constants import IMAPFlags
from .protocol import IMAPProtocol

logger = get_logger(__name__)


def build_sequence_set(uids: Iterable[int]) -> str:
    """Encode UIDs as a compact IMAP sequence set.

    >>> build_sequence_set([10, 1, 2, 3, 7, 9, 2])
    '1:3,7,9:10'

    Raises:
        ValidationError: If the list is empty or holds a non-positive UID
    """
    ordered = sorted(set(uids))
    if not ordered:
        raise ValidationError("Cannot build a sequence set from no UIDs")
    if ordered[0] <= 0:
        raise ValidationError(
            "UIDs must be positive integers", details={"uid": ordered[0]}
        )

    ranges: List[str] = []
    start = prev = ordered[0]
    for uid in ordered[1:]:
        if uid == prev + 1:
            prev = uid
            continue
        ranges.append(str(start) if start == prev else f"{start}:{prev}")
        start = prev = uid
    ranges.append(str(start) if start == prev else f"{start}:{prev}")

    return ",".join(ranges)


class FlagMutator:
    """Issues one UID STORE per batch of UIDs."""

    def __init__(self, protocol: IMAPProtocol):
        self.protocol = protocol

    async def delete(self, uids: Sequence[int]) -> None:
        """Flag messages \\Deleted. No expunge is issued."""
        await self._store(uids, "+FLAGS.SILENT", IMAPFlags.DELETED)

    async def mark_read(self, uids: Sequence[int]) -> None:
        """Add \\Seen, then expunge."""
        if await self._store(uids, "+FLAGS.SILENT", IMAPFlags.SEEN):
            await self.protocol.expunge()

    async def mark_unread(self, uids: Sequence[int]) -> None:
        """Remove \\Seen, then expunge."""
        if await self._store(uids, "-FLAGS.SILENT", IMAPFlags.SEEN):
            await self.protocol.expunge()

    async def _store(self, uids: Sequence[int], operation: str, flag: str) -> bool:
        """Return False without touching the server when ``uids`` is empty.

        Raises:
            SessionUnavailableError: If not connected, even for an empty batch
        """
        self.protocol.connection.require_session()
        if not uids:
            return False

        sequence_set = build_sequence_set(uids)
        await self.protocol.store_flags(sequence_set, operation, [flag])

        logger.info(
            "Updated message flags",
            extra={"uid_count": len(set(uids)), "flag": flag, "store_op": operation},
        )
        return True
