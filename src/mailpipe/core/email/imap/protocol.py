"""IMAP protocol operations - low-level IMAP command interface."""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Union

from mailpipe.core.models.mailbox import MailboxStatus
from mailpipe.utils.logging import get_logger

from .connection import IMAPConnection
from .constants import Timeouts

logger = get_logger(__name__)

Line = Union[bytes, bytearray, str]

ENVELOPE_ITEMS = "(FLAGS RFC822.SIZE BODY.PEEK[HEADER])"
BODY_ITEMS = "(BODY.PEEK[])"

_FLAGS_RE = re.compile(rb"FLAGS \(([^)]*)\)", re.IGNORECASE)
_SIZE_RE = re.compile(rb"RFC822\.SIZE (\d+)", re.IGNORECASE)
_UID_RE = re.compile(rb"UID (\d+)", re.IGNORECASE)
_FETCH_START_RE = re.compile(rb"^(?:\* )?\d+ FETCH\b", re.IGNORECASE)
_ATOM_SPECIALS = re.compile(r'[\s(){%*"\\\]]')


@dataclass(frozen=True)
class FetchedEnvelope:
    """Flags, size and raw header block of one message."""

    flags: FrozenSet[str]
    size: Optional[int]
    header: bytes


def quote_mailbox(name: str) -> str:
    """Quote a mailbox name when it is not a plain atom."""
    if name and not _ATOM_SPECIALS.search(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _as_bytes(line: Line) -> bytes:
    if isinstance(line, str):
        return line.encode("utf-8", errors="replace")
    return bytes(line)


def parse_search_response(lines: Sequence[Line]) -> List[int]:
    """Parse UIDs from a UID SEARCH reply, sorted ascending."""
    uids = set()
    for line in lines[:-1] if len(lines) > 1 else lines:
        tokens = _as_bytes(line).split()
        if tokens and tokens[0].upper() == b"SEARCH":
            tokens = tokens[1:]
        uids.update(int(token) for token in tokens if token.isdigit())
    return sorted(uids)


def parse_fetch_response(
    lines: Sequence[Line], uid: Optional[int] = None
) -> Optional[FetchedEnvelope]:
    """Extract flags, size and the literal of one message from a FETCH reply.

    Returns None when the reply holds no data for ``uid``.
    """
    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1

        if isinstance(line, bytearray):
            continue
        text = _as_bytes(line)
        if not _FETCH_START_RE.match(text):
            continue

        # Attribute text may continue after the literal on a later line
        attributes = [text]
        literal: Optional[bytes] = None
        while i < len(lines):
            follow = lines[i]
            if isinstance(follow, bytearray):
                if literal is None:
                    literal = bytes(follow)
                i += 1
                continue
            follow_text = _as_bytes(follow)
            if _FETCH_START_RE.match(follow_text) or not follow_text.startswith(
                (b" ", b")")
            ):
                break
            attributes.append(follow_text)
            i += 1

        joined = b" ".join(attributes)
        reported_uid = _UID_RE.search(joined)
        if uid is not None and reported_uid and int(reported_uid.group(1)) != uid:
            continue

        flags_match = _FLAGS_RE.search(joined)
        flags = frozenset(
            flag.decode("utf-8", errors="replace")
            for flag in (flags_match.group(1).split() if flags_match else [])
        )
        size_match = _SIZE_RE.search(joined)

        return FetchedEnvelope(
            flags=flags,
            size=int(size_match.group(1)) if size_match else None,
            header=literal if literal is not None else b"",
        )

    return None


class IMAPProtocol:
    """Low-level IMAP protocol operations on the selected mailbox."""

    def __init__(self, connection: IMAPConnection):
        """Initialise IMAP protocol handler.

        Args:
            connection: IMAPConnection instance for connection management
        """
        self.connection = connection
        self.selected: Optional[MailboxStatus] = None

    async def select_mailbox(self, name: str, read_only: bool = False) -> MailboxStatus:
        """SELECT (or EXAMINE when ``read_only``) a mailbox.

        Raises:
            IMAPError: If the server refuses the mailbox
        """
        mailbox = quote_mailbox(name)

        async def command(client):
            if read_only:
                return await client.examine(mailbox)
            return await client.select(mailbox)

        response = await self.connection.round_trip(
            "select", command, Timeouts.IMAP_SELECT
        )
        self.connection.check_response(response, "select", details={"mailbox": name})

        self.selected = MailboxStatus.from_response_lines(
            name, response.lines, read_only=read_only
        )
        logger.debug(
            f"Selected IMAP mailbox: {name}",
            extra={"exists": self.selected.exists, "read_only": read_only},
        )
        return self.selected

    async def search_uids(self, criteria: Sequence[str]) -> List[int]:
        """Run UID SEARCH and return matching UIDs (sorted ascending)."""
        response = await self.connection.round_trip(
            "search",
            lambda client: client.uid_search(*criteria, charset=None),
            Timeouts.IMAP_SEARCH,
        )
        self.connection.check_response(
            response, "search", details={"criteria": " ".join(criteria)}
        )

        uids = parse_search_response(response.lines)
        logger.debug(
            "UID search completed",
            extra={"criteria": " ".join(criteria), "count": len(uids)},
        )
        return uids

    async def fetch_envelope(self, uid: int) -> Optional[FetchedEnvelope]:
        """Fetch flags, size and headers without setting \\Seen."""
        response = await self.connection.round_trip(
            "fetch",
            lambda client: client.uid("fetch", str(uid), ENVELOPE_ITEMS),
            Timeouts.IMAP_FETCH,
        )
        self.connection.check_response(response, "fetch", details={"uid": uid})
        return parse_fetch_response(response.lines, uid)

    async def fetch_body(self, uid: int) -> Optional[bytes]:
        """Fetch the full raw message without setting \\Seen."""
        response = await self.connection.round_trip(
            "fetch",
            lambda client: client.uid("fetch", str(uid), BODY_ITEMS),
            Timeouts.IMAP_FETCH,
        )
        self.connection.check_response(response, "fetch", details={"uid": uid})

        fetched = parse_fetch_response(response.lines, uid)
        if fetched is None or not fetched.header:
            return None
        return fetched.header

    async def store_flags(
        self, sequence_set: str, operation: str, flags: Sequence[str]
    ) -> None:
        """Issue UID STORE, e.g. ``+FLAGS.SILENT (\\Seen)``."""
        flag_list = "(" + " ".join(flags) + ")"
        response = await self.connection.round_trip(
            "store",
            lambda client: client.uid("store", sequence_set, operation, flag_list),
            Timeouts.IMAP_STORE,
        )
        self.connection.check_response(
            response,
            "store",
            details={"uids": sequence_set, "flags": flag_list},
        )
        logger.debug(
            "Flags updated",
            extra={"uids": sequence_set, "store_op": operation, "flags": flag_list},
        )

    async def expunge(self) -> None:
        """Permanently remove messages flagged \\Deleted."""
        response = await self.connection.round_trip(
            "expunge", lambda client: client.expunge(), Timeouts.IMAP_EXPUNGE
        )
        self.connection.check_response(response, "expunge")
