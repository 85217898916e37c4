"""Mailbox selection models"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

_EXISTS_RE = re.compile(rb"^(\d+) EXISTS", re.IGNORECASE)
_RECENT_RE = re.compile(rb"^(\d+) RECENT", re.IGNORECASE)
_UIDVALIDITY_RE = re.compile(rb"\[UIDVALIDITY (\d+)\]", re.IGNORECASE)
_UIDNEXT_RE = re.compile(rb"\[UIDNEXT (\d+)\]", re.IGNORECASE)


def _match_int(pattern: "re.Pattern[bytes]", line: bytes) -> Optional[int]:
    match = pattern.search(line)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class MailboxStatus:
    """Server-reported state of the currently selected mailbox."""

    name: str
    exists: int = 0
    recent: int = 0
    uid_validity: Optional[int] = None
    uid_next: Optional[int] = None
    read_only: bool = False

    @classmethod
    def from_response_lines(
        cls,
        name: str,
        lines: Iterable[Union[bytes, bytearray, str]],
        read_only: bool = False,
    ) -> "MailboxStatus":
        """Build the status from the untagged lines of a SELECT/EXAMINE reply."""
        values = {}

        for line in lines:
            if isinstance(line, str):
                line = line.encode("utf-8", errors="replace")
            line = bytes(line).strip()

            for key, pattern in (
                ("exists", _EXISTS_RE),
                ("recent", _RECENT_RE),
                ("uid_validity", _UIDVALIDITY_RE),
                ("uid_next", _UIDNEXT_RE),
            ):
                value = _match_int(pattern, line)
                if value is not None:
                    values[key] = value

            if b"[READ-ONLY]" in line.upper():
                read_only = True

        return cls(name=name, read_only=read_only, **values)
