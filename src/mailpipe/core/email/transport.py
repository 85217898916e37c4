"""Protocol client factory shared by the IMAP and SMTP pipelines.

A ``Dialer`` is handed to ``MailClient`` at construction and is the only
place that instantiates ``aioimaplib``/``aiosmtplib`` clients. Subclass it
to route connections through a proxy or to substitute fakes in tests;
nothing here touches process-wide socket state.
"""

import ssl
from typing import Optional

import aioimaplib
import aiosmtplib

from mailpipe.core.email.smtp.resolver import TransportMode, TransportPlan


class Dialer:
    """Builds unconnected protocol clients with a shared TLS policy."""

    def __init__(
        self,
        timeout: float = 30.0,
        tls_verify: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        """Initialise dialer.

        Args:
            timeout: Socket timeout handed to the protocol clients (seconds)
            tls_verify: Verify server certificates and host names
            ssl_context: Explicit context, overrides ``tls_verify``
        """
        self.timeout = timeout
        self.tls_verify = tls_verify
        self._ssl_context = ssl_context

    def tls_context(self) -> ssl.SSLContext:
        if self._ssl_context is not None:
            return self._ssl_context

        context = ssl.create_default_context()
        if not self.tls_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def imap_client(self, host: str, port: int) -> aioimaplib.IMAP4_SSL:
        """IMAP is always implicit TLS."""
        return aioimaplib.IMAP4_SSL(
            host=host,
            port=port,
            timeout=self.timeout,
            ssl_context=self.tls_context(),
        )

    def smtp_client(
        self, host: str, port: int, plan: TransportPlan
    ) -> aiosmtplib.SMTP:
        """SMTP client for ``plan``; STARTTLS is driven by the caller."""
        return aiosmtplib.SMTP(
            hostname=host,
            port=port,
            use_tls=plan.use_tls,
            start_tls=False,
            tls_context=(
                None if plan.mode is TransportMode.PLAIN else self.tls_context()
            ),
            timeout=self.timeout,
        )
