"""SMTP delivery.

- resolver: Maps (port, connection type) to a transport plan
- composer: Builds the single-part wire message
- SendPipeline: One SMTP transaction per send

    >>> from mailpipe.core.email.smtp import SendPipeline, SendOptions
    >>>
    >>> pipeline = SendPipeline("me@example.com", "secret", "smtp.example.com:587")
    >>> await pipeline.send(
    ...     ["you@example.com"],
    ...     "Test",
    ...     "<p>Hello</p>",
    ...     SendOptions(cc=["boss@example.com"], html=True),
    ... )
"""

from .composer import SendOptions, compose_message
from .pipeline import SendPipeline
from .resolver import ConnectionType, TransportMode, TransportPlan, resolve_transport

__all__ = [
    "ConnectionType",
    "SendOptions",
    "SendPipeline",
    "TransportMode",
    "TransportPlan",
    "compose_message",
    "resolve_transport",
]
