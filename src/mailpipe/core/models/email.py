"""Email domain models"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional

SEEN_FLAG = "\\Seen"


@dataclass(frozen=True)
class Attachment:
    """A MIME part delivered with an attachment disposition."""

    name: str
    body: bytes

    @property
    def size(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class Email:
    """One retrieved message.

    ``content`` holds the first inline part, transcoded to UTF-8 when it is
    text. ``uid`` is unique within a mailbox for its UIDVALIDITY epoch.
    """

    uid: int
    subject: str = ""
    content: bytes = b""
    senders: List[str] = field(default_factory=list)
    date: Optional[datetime] = None
    attachments: List[Attachment] = field(default_factory=list)
    flags: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.uid <= 0:
            raise ValueError("Email UID must be positive")

    @property
    def is_read(self) -> bool:
        return SEEN_FLAG in self.flags

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    @property
    def text(self) -> str:
        """Inline content decoded for display."""
        return self.content.decode("utf-8", errors="replace")

    def get_preview(self, max_length: int = 100) -> str:
        """Get a preview of the email body.

        Args:
            max_length (int): Maximum length of the preview.

        Returns:
            str: The preview text.
        """
        text = " ".join(self.text.split())
        if len(text) <= max_length:
            return text
        return text[:max_length] + "..."

    def __str__(self) -> str:
        sender = self.senders[0] if self.senders else "unknown sender"
        return f"Email(uid={self.uid}, subject={self.subject!r}, from={sender})"
