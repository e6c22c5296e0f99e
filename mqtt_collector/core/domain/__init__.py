from .errors import (
    BrokerConnectionError,
    CollectorError,
    DecodeError,
    ErrorKind,
    ReceiveError,
    SessionError,
    StartupError,
    StorageError,
    SubscriptionError,
    UnexpectedSessionError,
)
from .reading import InboundMessage, Reading

__all__ = [
    "BrokerConnectionError",
    "CollectorError",
    "DecodeError",
    "ErrorKind",
    "InboundMessage",
    "Reading",
    "ReceiveError",
    "SessionError",
    "StartupError",
    "StorageError",
    "SubscriptionError",
    "UnexpectedSessionError",
]
