"""SMTP send pipeline - connection negotiation and the mail transaction."""

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import aiosmtplib

from mailpipe.core.email.transport import Dialer
from mailpipe.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectError,
    MissingConfigError,
    SMTPError,
)
from mailpipe.utils.logging import async_log_call, get_logger

from .composer import SendOptions, compose_message
from .constants import SMTPResponse, Timeouts
from .resolver import (
    ConnectionType,
    TransportPlan,
    parse_server_address,
    resolve_transport,
)

logger = get_logger(__name__)


@dataclass
class SendStats:
    """Tracks SMTP send metrics."""

    emails_sent: int = 0
    send_failures: int = 0
    total_send_time: float = 0.0

    def record_send(self, duration: float, success: bool = True) -> None:
        """Record an email send attempt.

        Args:
            duration: Time taken to send the email in seconds
            success: Whether the send was successful
        """
        self.total_send_time += duration

        if success:
            self.emails_sent += 1
        else:
            self.send_failures += 1


def _accepted(error: aiosmtplib.SMTPResponseException) -> bool:
    """Some servers raise on a 2xx reply; the status code decides."""
    return SMTPResponse.is_success(error.code)


class SendPipeline:
    """Drives one SMTP transaction per ``send`` call.

    Each call dials a fresh connection:
    resolve -> connect -> EHLO -> STARTTLS (per plan) -> AUTH PLAIN
    -> MAIL FROM -> RCPT TO (to + cc + bcc) -> DATA -> QUIT.
    """

    def __init__(
        self,
        sender: str,
        password: str,
        server: Optional[str],
        connection_type: ConnectionType = ConnectionType.AUTO,
        dialer: Optional[Dialer] = None,
    ):
        """Initialise send pipeline.

        Args:
            sender: Account address, used for AUTH and MAIL FROM
            password: Account secret
            server: SMTP endpoint as host[:port]; None or "" disables sending
            connection_type: Transport policy (auto, ssl, starttls, plain)
            dialer: Factory for aiosmtplib clients
        """
        self.sender = sender
        self._password = password
        self.server = server or ""
        self.connection_type = ConnectionType(connection_type)
        self.dialer = dialer or Dialer()
        self._stats = SendStats()

    def get_stats(self) -> SendStats:
        return self._stats

    @async_log_call
    async def send(
        self,
        to: Sequence[str],
        subject: str,
        body: Union[str, bytes],
        options: Optional[SendOptions] = None,
    ) -> None:
        """Compose and deliver a message.

        Args:
            to: Primary recipients (must not be empty)
            subject: Subject line
            body: Message body, plain text or HTML per ``options.html``
            options: Cc/Bcc lists and the HTML flag

        Raises:
            ConfigurationError: No SMTP endpoint or no recipients
            ValidationError: An address cannot be written to a header
            ConnectError: Dial, STARTTLS (mandatory mode) or login failure
            SMTPError: The server refused the sender, a recipient or the data
        """
        if not self.server:
            raise MissingConfigError("SMTP server is not configured")
        if not to:
            raise ConfigurationError("Recipient list is empty")

        options = options or SendOptions()
        host, port = parse_server_address(self.server)
        plan = resolve_transport(port, self.connection_type)

        message = compose_message(self.sender, to, subject, body, options)
        recipients: List[str] = [*to, *options.cc, *options.bcc]

        send_start = time.time()
        logger.info(
            "Sending email",
            extra={
                "server": host,
                "port": port,
                "transport": plan.mode.value,
                "recipient_count": len(recipients),
            },
        )

        client = self.dialer.smtp_client(host, port, plan)
        try:
            await self._open(client, host, port, plan)
            await self._transaction(client, recipients, message)

        except (aiosmtplib.SMTPException, OSError) as e:
            self._stats.record_send(time.time() - send_start, success=False)
            raise SMTPError(
                f"SMTP dialog failed: {str(e)}", details={"server": host}
            ) from e

        except Exception:
            self._stats.record_send(time.time() - send_start, success=False)
            raise

        finally:
            if client.is_connected:
                client.close()

        duration = time.time() - send_start
        self._stats.record_send(duration)
        logger.info(
            "Email sent successfully",
            extra={"duration_seconds": round(duration, 2)},
        )

    async def _open(
        self,
        client: aiosmtplib.SMTP,
        host: str,
        port: int,
        plan: TransportPlan,
    ) -> None:
        """Connect, negotiate TLS and authenticate."""
        try:
            await asyncio.wait_for(client.connect(), timeout=Timeouts.SMTP_CONNECT)
            await client.ehlo()

        except asyncio.TimeoutError as e:
            raise ConnectError(
                "SMTP connection timeout", details={"server": host, "port": port}
            ) from e

        except (aiosmtplib.SMTPException, OSError) as e:
            raise ConnectError(
                f"Failed to connect to SMTP server: {str(e)}",
                details={"server": host, "port": port},
            ) from e

        if plan.attempt_upgrade:
            try:
                await asyncio.wait_for(
                    client.starttls(), timeout=Timeouts.SMTP_STARTTLS
                )
                await client.ehlo()

            except (asyncio.TimeoutError, aiosmtplib.SMTPException, OSError) as e:
                if plan.upgrade_required:
                    raise ConnectError(
                        f"STARTTLS failed: {str(e)}",
                        details={"server": host, "port": port},
                    ) from e

                logger.warning(
                    "STARTTLS failed, continuing without TLS",
                    extra={"server": host, "port": port, "error": str(e)},
                )

        try:
            await client.auth_plain(self.sender, self._password)

        except aiosmtplib.SMTPAuthenticationError as e:
            logger.warning("SMTP authentication failed", extra={"server": host})
            raise AuthenticationError(
                "SMTP authentication failed. Please verify your credentials.",
                details={"server": host},
            ) from e

        except (aiosmtplib.SMTPException, OSError) as e:
            raise ConnectError(
                f"SMTP login error: {str(e)}", details={"server": host}
            ) from e

    async def _transaction(
        self,
        client: aiosmtplib.SMTP,
        recipients: Sequence[str],
        message: bytes,
    ) -> None:
        """MAIL FROM, one RCPT per recipient, DATA, QUIT."""
        try:
            await client.mail(self.sender)
        except aiosmtplib.SMTPResponseException as e:
            raise SMTPError(f"Failed to set sender: {e.message}") from e

        for recipient in recipients:
            try:
                await client.rcpt(recipient)
            except aiosmtplib.SMTPResponseException as e:
                if not _accepted(e):
                    raise SMTPError(
                        f"Failed to add recipient {recipient}: {e.message}",
                        details={"recipient": recipient, "code": e.code},
                    ) from e

        try:
            await client.data(message)
        except aiosmtplib.SMTPResponseException as e:
            if not _accepted(e):
                raise SMTPError(
                    f"Failed to write message: {e.message}",
                    details={"code": e.code},
                ) from e

        try:
            await asyncio.wait_for(client.quit(), timeout=Timeouts.SMTP_QUIT)
        except (asyncio.TimeoutError, aiosmtplib.SMTPException, OSError) as e:
            logger.warning(
                "QUIT failed after message was accepted", extra={"error": str(e)}
            )
