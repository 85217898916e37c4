"""Email parsing - headers, inline content and attachments from raw RFC 5322 bytes."""

import email
from dataclasses import dataclass, field
from datetime import datetime
from email.header import decode_header, make_header
from email.message import Message
from email.utils import getaddresses, parsedate_to_datetime
from typing import FrozenSet, Iterator, List, Optional, Tuple

from mailpipe.core.models.email import Attachment, Email
from mailpipe.utils.errors import ParseError
from mailpipe.utils.logging import get_logger

logger = get_logger(__name__)

UTF8_CHARSETS = {"utf-8", "utf8", "us-ascii", "ascii"}


@dataclass(frozen=True)
class Envelope:
    """Header fields of a message, decoded."""

    subject: str = ""
    senders: List[str] = field(default_factory=list)
    date: Optional[datetime] = None


def decode_email_header(header_value: Optional[str]) -> str:
    """Decode a header that may carry RFC 2047 encoded words."""
    if not header_value:
        return ""

    try:
        return str(make_header(decode_header(header_value)))
    except (LookupError, UnicodeError, ValueError):
        return str(header_value)


def decode_filename(filename: Optional[str]) -> str:
    """Decode attachment filename with proper encoding handling."""
    return decode_email_header(filename).strip()


def parse_email_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 5322 date; None when absent or malformed."""
    if not date_str:
        return None

    try:
        return parsedate_to_datetime(date_str)
    except (TypeError, ValueError, IndexError):
        logger.debug("Unparseable Date header", extra={"date_header": date_str})
        return None


def parse_senders(from_header: Optional[str]) -> List[str]:
    """Return the mailbox@host form of every From address."""
    if not from_header:
        return []

    return [
        address
        for _, address in getaddresses([str(from_header)])
        if "@" in address
    ]


def iter_leaf_parts(message: Message) -> Iterator[Message]:
    """Yield non-multipart parts depth first.

    Encapsulated messages (message/rfc822) are yielded whole, not descended.
    """
    if message.get_content_maintype() == "multipart" and message.is_multipart():
        for part in message.get_payload():
            yield from iter_leaf_parts(part)
    else:
        yield message


def is_inline(part: Message) -> bool:
    """Inline parts are marked so, or are undisposed text.

    Everything else, undisposed images and documents included, is an
    attachment candidate.
    """
    disposition = part.get_content_disposition()
    if disposition == "inline":
        return True
    return disposition != "attachment" and part.get_content_maintype() == "text"


def _part_bytes(part: Message) -> bytes:
    """Transfer-decoded payload of a leaf part.

    Raises:
        ParseError: If the part cannot be decoded
    """
    try:
        if part.is_multipart():
            return b"".join(sub.as_bytes() for sub in part.get_payload())

        payload = part.get_payload(decode=True)

    except Exception as e:
        raise ParseError(
            f"Failed to decode MIME part: {str(e)}",
            details={"content_type": part.get_content_type()},
        ) from e

    if payload is None:
        raise ParseError(
            "MIME part has no payload",
            details={"content_type": part.get_content_type()},
        )
    return payload


def _to_utf8(payload: bytes, charset: Optional[str]) -> bytes:
    if not charset or charset.lower() in UTF8_CHARSETS:
        return payload

    try:
        return payload.decode(charset, errors="replace").encode("utf-8")
    except LookupError:
        logger.debug("Unknown charset, keeping raw bytes", extra={"charset": charset})
        return payload


class EmailParser:
    """Turns raw message bytes into ``Email`` objects."""

    @staticmethod
    def parse_envelope(header: bytes) -> Envelope:
        """Decode subject, senders and date from a header block."""
        message = email.message_from_bytes(header)

        return Envelope(
            subject=decode_email_header(message.get("Subject")),
            senders=parse_senders(message.get("From")),
            date=parse_email_date(message.get("Date")),
        )

    @staticmethod
    def read_inline(part: Message) -> bytes:
        payload = _part_bytes(part)
        if part.get_content_maintype() == "text":
            return _to_utf8(payload, part.get_content_charset())
        return payload

    @staticmethod
    def read_attachment(part: Message) -> Optional[Attachment]:
        """Return the attachment, or None when it carries no filename.

        The name comes from the Content-Disposition filename, falling back
        to the Content-Type name parameter.
        """
        name = decode_filename(part.get_filename())
        if not name:
            logger.debug(
                "Skipping attachment without filename",
                extra={"content_type": part.get_content_type()},
            )
            return None
        return Attachment(name=name, body=_part_bytes(part))

    @staticmethod
    def parse_body(raw: bytes) -> Tuple[bytes, List[Attachment]]:
        """Walk the MIME tree of a full message.

        The first non-empty inline part becomes the content; every other
        part that carries a filename becomes an ``Attachment``. Parts that
        fail to decode are skipped.
        """
        message = email.message_from_bytes(raw)

        content = b""
        attachments: List[Attachment] = []

        for part in iter_leaf_parts(message):
            try:
                if is_inline(part):
                    if not content:
                        content = EmailParser.read_inline(part)
                else:
                    attachment = EmailParser.read_attachment(part)
                    if attachment is not None:
                        attachments.append(attachment)

            except ParseError as e:
                logger.debug(f"Skipping MIME part: {e.message}", extra=e.details)

        return content, attachments

    @staticmethod
    def build_email(
        uid: int,
        header: bytes,
        raw: bytes,
        flags: FrozenSet[str] = frozenset(),
    ) -> Email:
        """Combine the envelope fetch and the body fetch into an ``Email``."""
        envelope = EmailParser.parse_envelope(header or raw)
        content, attachments = EmailParser.parse_body(raw)

        return Email(
            uid=uid,
            subject=envelope.subject,
            content=content,
            senders=envelope.senders,
            date=envelope.date,
            attachments=attachments,
            flags=frozenset(flags),
        )
