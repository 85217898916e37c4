from .connection import IMAPConnection, is_transient_error
from .fetch_pool import FetchFailure, FetchPool
from .mutations import FlagMutator, build_sequence_set
from .protocol import IMAPProtocol

__all__ = [
    "IMAPConnection",
    "IMAPProtocol",
    "FetchPool",
    "FetchFailure",
    "FlagMutator",
    "build_sequence_set",
    "is_transient_error",
]
