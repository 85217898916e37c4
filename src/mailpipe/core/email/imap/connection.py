"""IMAP connection management - session lifecycle, round trips and reconnection."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import aioimaplib

from mailpipe.core.email.smtp.resolver import parse_server_address
from mailpipe.core.email.transport import Dialer
from mailpipe.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectError,
    IMAPError,
    MissingConfigError,
    NetworkTimeoutError,
    SessionUnavailableError,
    TransientNetworkError,
    ValidationError,
)
from mailpipe.utils.logging import async_log_call, get_logger

from .constants import TRANSIENT_MARKERS, IMAPPorts, IMAPResponse, Timeouts

logger = get_logger(__name__)

T = TypeVar("T")

# A failing call is re-issued at most this many times
MAX_RECONNECT_ATTEMPTS = 1


def is_transient_error(error: BaseException) -> bool:
    """Check whether an error means the session dropped and a reconnect may help.

    Configuration, validation, login and missing-session errors are never
    transient, whatever their message says.
    """
    if isinstance(error, TransientNetworkError):
        return True

    if isinstance(
        error,
        (ConfigurationError, ValidationError, ConnectError, SessionUnavailableError),
    ):
        return False

    if isinstance(error, (BrokenPipeError, ConnectionResetError)):
        return True

    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


@dataclass
class ConnectionStats:
    """Tracks IMAP connection metrics."""

    connections_created: int = 0
    reconnections: int = 0
    operations_count: int = 0
    last_operation_time: Optional[float] = None

    def record_operation(self) -> None:
        self.operations_count += 1
        self.last_operation_time = time.time()


class IMAPConnection:
    """Owns the single IMAP session shared by every retrieval operation.

    Each command/response pair goes through ``round_trip``, which holds a
    per-session lock so concurrent fetch tasks never interleave on the wire.
    """

    def __init__(
        self,
        address: str,
        password: str,
        server: Optional[str],
        dialer: Optional[Dialer] = None,
        reconnect_delay: float = 1.0,
    ):
        """Initialise IMAP connection.

        Args:
            address: Login name (the account address)
            password: Account secret
            server: IMAP endpoint as host[:port], port defaults to 993
            dialer: Factory for aioimaplib clients
            reconnect_delay: Pause before the single reconnect (seconds)
        """
        self.address = address
        self._password = password
        self.server = server or ""
        self.dialer = dialer or Dialer()
        self.reconnect_delay = reconnect_delay
        self._client: Optional[aioimaplib.IMAP4_SSL] = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._reconnect_lock = asyncio.Lock()
        self._stats = ConnectionStats()

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def generation(self) -> int:
        """Incremented every time a new session is established."""
        return self._generation

    def get_stats(self) -> ConnectionStats:
        """Get current connection statistics."""
        return self._stats

    def require_session(self) -> aioimaplib.IMAP4_SSL:
        """Return the live client.

        Raises:
            SessionUnavailableError: If no session has been established
        """
        if self._client is None:
            raise SessionUnavailableError(
                "IMAP session is not connected", details={"server": self.server}
            )
        return self._client

    async def connect(self) -> None:
        """Dial the server over implicit TLS and log in.

        Raises:
            MissingConfigError: If no IMAP server is configured
            ConnectError: If the server cannot be reached
            AuthenticationError: If the login is rejected
        """
        if not self.server:
            raise MissingConfigError("IMAP server is not configured")

        host, port = parse_server_address(self.server, default_port=IMAPPorts.IMAPS)
        start_time = time.time()

        logger.info("Connecting to IMAP server", extra={"server": host, "port": port})

        client = self.dialer.imap_client(host, port)

        try:
            await asyncio.wait_for(
                client.wait_hello_from_server(), timeout=Timeouts.IMAP_CONNECT
            )
            response = await asyncio.wait_for(
                client.login(self.address, self._password),
                timeout=Timeouts.IMAP_LOGIN,
            )

        except asyncio.TimeoutError as e:
            logger.error(
                f"IMAP connection timed out after {time.time() - start_time:.2f}s"
            )
            raise ConnectError(
                "IMAP connection timeout", details={"server": host, "port": port}
            ) from e

        except Exception as e:
            raise ConnectError(
                f"Failed to connect to IMAP server: {str(e)}",
                details={"server": host, "port": port},
            ) from e

        if response.result != IMAPResponse.OK:
            logger.warning("IMAP authentication failed", extra={"server": host})
            raise AuthenticationError(
                "IMAP authentication failed",
                details={"server": host, "response": _first_line(response)},
            )

        self._client = client
        self._generation += 1
        self._stats.connections_created += 1

        logger.info(
            "IMAP connection established",
            extra={
                "server": host,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )

    async def reconnect(self, failed_generation: Optional[int] = None) -> None:
        """Replace the current session with a freshly logged-in one.

        Only one reconnect runs at a time. When ``failed_generation`` names a
        session that has already been replaced, nothing is done and the
        caller retries on the current session.

        The new session is installed before the old one is logged out.
        """
        async with self._reconnect_lock:
            if failed_generation is not None and failed_generation != self._generation:
                logger.debug(
                    "IMAP session already replaced, skipping reconnect",
                    extra={"failed": failed_generation, "current": self._generation},
                )
                return

            self._stats.reconnections += 1
            if self.reconnect_delay > 0:
                await asyncio.sleep(self.reconnect_delay)

            stale = self._client
            try:
                await self.connect()
            except Exception:
                if self._client is stale:
                    self._client = None
                raise
            finally:
                if stale is not self._client:
                    await _logout(stale)

    async def call_with_reconnect(
        self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Run ``operation``, reconnecting and re-issuing it once on a dropped session.

        The retry re-runs the whole operation, not the failed command. Its
        outcome, success or error, is returned unmodified. A failed reconnect
        raises the reconnect error.
        """
        attempt = 0
        while True:
            generation = self._generation
            try:
                return await operation(*args, **kwargs)

            except Exception as e:
                # A refusal from a session swapped out underneath us is retried too
                replaced = generation != self._generation and isinstance(e, IMAPError)
                if attempt >= MAX_RECONNECT_ATTEMPTS or not (
                    replaced or is_transient_error(e)
                ):
                    raise

                attempt += 1
                logger.warning(
                    "IMAP session lost, reconnecting",
                    extra={"error": str(e), "attempt": attempt},
                )
                await self.reconnect(failed_generation=generation)

    async def round_trip(
        self,
        operation: str,
        command: Callable[[aioimaplib.IMAP4_SSL], Awaitable["aioimaplib.Response"]],
        timeout: float,
    ) -> "aioimaplib.Response":
        """Issue one command under the session lock.

        Args:
            operation: Name used in logs and error details
            command: Coroutine function taking the live client
            timeout: Seconds before the command is abandoned

        Raises:
            SessionUnavailableError: If not connected
            NetworkTimeoutError: If the server does not answer in time
            TransientNetworkError: If the session dropped mid-command
            IMAPError: For any other failure
        """
        async with self._lock:
            client = self.require_session()
            try:
                response = await asyncio.wait_for(command(client), timeout=timeout)

            except asyncio.TimeoutError as e:
                raise NetworkTimeoutError(
                    f"IMAP {operation} timed out", details={"operation": operation}
                ) from e

            except Exception as e:
                if is_transient_error(e):
                    raise TransientNetworkError(
                        f"IMAP {operation} failed, connection closed: {str(e)}",
                        details={"operation": operation},
                    ) from e
                raise IMAPError(
                    f"IMAP error during {operation}: {str(e)}",
                    details={"operation": operation},
                ) from e

        self._stats.record_operation()
        return response

    def check_response(
        self,
        response: "aioimaplib.Response",
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Raise if the server did not answer OK.

        Raises:
            TransientNetworkError: If the refusal says the session is closing
            IMAPError: For any other refusal
        """
        if response.result == IMAPResponse.OK:
            return

        text = _first_line(response)
        details = {**(details or {}), "response": text, "operation": operation}

        if any(marker in text.lower() for marker in TRANSIENT_MARKERS):
            raise TransientNetworkError(
                f"IMAP operation failed: {operation}: {text}", details=details
            )

        raise IMAPError(f"IMAP operation failed: {operation}", details=details)

    @async_log_call
    async def close(self) -> None:
        """Close the IMAP connection."""
        async with self._reconnect_lock:
            async with self._lock:
                client, self._client = self._client, None
                await _logout(client)
        logger.debug("IMAP connection closed")

    ## Context Manager Helpers

    async def __aenter__(self):
        """Enter async context manager."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.close()


async def _logout(client: Optional[aioimaplib.IMAP4_SSL]) -> None:
    if client is None:
        return

    try:
        await asyncio.wait_for(client.logout(), timeout=Timeouts.IMAP_LOGOUT)
    except Exception as e:
        logger.debug(f"Error closing IMAP connection: {str(e)}")


def _first_line(response: "aioimaplib.Response") -> str:
    line = response.lines[-1] if response.lines else b"No response"
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")
    return str(line)
