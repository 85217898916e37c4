"""Retrieval filters - IMAP search criteria and post-search UID selection."""

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from mailpipe.core.email.imap.constants import IMAPFolders
from mailpipe.utils.errors import ValidationError

DateBound = Union[date, datetime]

# IMAP dates use English month names regardless of locale
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class Filter:
    """Options for one retrieval.

    Attributes:
        limit: Maximum number of emails returned, 0 for no limit
        all: Include already-read emails (otherwise UNSEEN only)
        mark_read: Set \\Seen on retrieved emails afterwards
        sort_desc: Newest (highest UID) first
        mailbox: Mailbox the retrieval runs against
        since: Only emails received on or after this date
        before: Only emails received before this date
    """

    limit: int = 0
    all: bool = False
    mark_read: bool = False
    sort_desc: bool = False
    mailbox: str = IMAPFolders.INBOX
    since: Optional[DateBound] = None
    before: Optional[DateBound] = None

    def __post_init__(self):
        if self.limit < 0:
            raise ValidationError(
                "Filter limit cannot be negative", details={"limit": self.limit}
            )
        if not self.mailbox:
            raise ValidationError("Filter mailbox cannot be empty")

    def with_options(self, **options) -> "Filter":
        """Return a copy with ``options`` applied.

        Raises:
            ValidationError: On an unknown option or invalid value
        """
        unknown = set(options) - {f.name for f in fields(self)}
        if unknown:
            raise ValidationError(
                f"Unknown filter option(s): {', '.join(sorted(unknown))}",
                details={"options": sorted(unknown)},
            )
        return replace(self, **options)


def format_imap_date(value: DateBound) -> str:
    """Format a date as IMAP's ``dd-Mon-yyyy``."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d}"


def build_criteria(search_filter: Filter) -> List[str]:
    """Translate a filter into UID SEARCH keys."""
    criteria = ["ALL" if search_filter.all else "UNSEEN"]

    if search_filter.since is not None:
        criteria.extend(["SINCE", format_imap_date(search_filter.since)])
    if search_filter.before is not None:
        criteria.extend(["BEFORE", format_imap_date(search_filter.before)])

    return criteria


def select_uids(uids: Iterable[int], search_filter: Filter) -> List[int]:
    """Apply limit and ordering to search results.

    With a limit, ``sort_desc`` keeps the newest ``limit`` UIDs, otherwise
    the oldest ``limit`` are kept.
    """
    selected = sorted(set(uids))
    limit = search_filter.limit

    if limit and len(selected) > limit:
        selected = selected[-limit:] if search_filter.sort_desc else selected[:limit]

    if search_filter.sort_desc:
        selected.reverse()

    return selected
