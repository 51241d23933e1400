"""Expose ORM models."""
from .base import Base
from .message import Message, MessageType
from .peer import Peer

__all__ = [
    "Base",
    "Message",
    "MessageType",
    "Peer",
]
