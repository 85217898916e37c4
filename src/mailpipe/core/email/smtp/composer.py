"""Outbound message composition - single-part, base64 body."""

import base64
from dataclasses import dataclass, field
from email.header import Header
from email.utils import formataddr, parseaddr
from typing import List, Sequence, Tuple, Union

from mailpipe.utils.errors import ValidationError

CRLF = b"\r\n"


@dataclass(frozen=True)
class SendOptions:
    """Optional settings for one send call."""

    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    html: bool = False


def encode_address(addr: str) -> str:
    """Return ``addr`` with a non-ASCII domain IDNA-encoded.

    Raises:
        ValidationError: If the local part is not ASCII or the domain cannot be encoded
    """
    if addr.isascii():
        return addr

    local, _, domain = addr.rpartition("@")
    if not local.isascii():
        raise ValidationError(
            "Non-ASCII local part cannot be written to a header",
            details={"address": addr},
        )

    try:
        return f"{local}@{domain.encode('idna').decode('ascii')}"
    except UnicodeError as e:
        raise ValidationError(
            f"Invalid domain in address: {addr}", details={"address": addr}
        ) from e


def format_address(address: str) -> str:
    """Render an address for a header, or return it unchanged if unparsable."""
    name, addr = parseaddr(address)
    if not addr or "@" not in addr:
        return address

    addr = encode_address(addr)
    if name:
        return formataddr((name, addr), charset="utf-8")

    return f"<{addr}>"


def format_addresses(addresses: Sequence[str]) -> str:
    return ", ".join(format_address(a) for a in addresses)


def _header_value(value: str) -> str:
    value = " ".join(value.splitlines())
    if value.isascii():
        return value
    return Header(value, "utf-8").encode()


def build_headers(
    sender: str,
    to: Sequence[str],
    subject: str,
    options: SendOptions,
) -> List[Tuple[str, str]]:
    """Return the header block as an ordered list of (field, value) pairs.

    Bcc recipients are delivered through RCPT only and never listed here.
    """
    content_type = "text/html" if options.html else "text/plain"

    headers = [
        ("From", format_address(sender)),
        ("To", format_addresses(to)),
    ]
    if options.cc:
        headers.append(("Cc", format_addresses(options.cc)))

    headers.extend(
        [
            ("Subject", _header_value(subject)),
            ("MIME-Version", "1.0"),
            ("Content-Type", f'{content_type}; charset="utf-8"'),
            ("Content-Transfer-Encoding", "base64"),
        ]
    )
    return headers


def encode_body(body: Union[str, bytes]) -> bytes:
    """Base64 encode the body in 76-character CRLF-terminated lines."""
    if isinstance(body, str):
        body = body.encode("utf-8")

    lines = base64.encodebytes(body).splitlines()
    return b"".join(line + CRLF for line in lines)


def compose_message(
    sender: str,
    to: Sequence[str],
    subject: str,
    body: Union[str, bytes],
    options: SendOptions,
) -> bytes:
    """Compose the wire form: header block, blank line, base64 body."""
    message = bytearray()
    for name, value in build_headers(sender, to, subject, options):
        try:
            message += f"{name}: {value}".encode("ascii") + CRLF
        except UnicodeEncodeError as e:
            raise ValidationError(
                f"Header {name} cannot be encoded", details={"header": name}
            ) from e

    message += CRLF
    message += encode_body(body)

    return bytes(message)
