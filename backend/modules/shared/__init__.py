"""Shared DTOs and helpers used by both the relay and the client.

Only lightweight, common models should live here. Do not place
service-specific logic or heavy dependencies (e.g., aiortc, httpx)
in this package.
"""

from .dto import (
    MessageType,
    SignalingMessage,
    SessionDescriptionPayload,
    IceCandidatePayload,
    JoinRequest,
    LeaveRequest,
    SendRequest,
)
from .logging_config import setup_logging, cleanup_old_logs

__all__ = [
    "MessageType",
    "SignalingMessage",
    "SessionDescriptionPayload",
    "IceCandidatePayload",
    "JoinRequest",
    "LeaveRequest",
    "SendRequest",
    "setup_logging",
    "cleanup_old_logs",
]
