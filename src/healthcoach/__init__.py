"""healthcoach - a health coach conversation with one blood pressure tool."""

from .availability import Available, AvailabilityStatus, Unavailable, UnavailableReason
from .session import ConversationSession, SessionState
from .stream import ResponseStream
from .tools import ToolDescriptor, ToolRegistry
from .transcript import Transcript

__version__ = "0.1.0"

__all__ = [
    "Available",
    "AvailabilityStatus",
    "ConversationSession",
    "ResponseStream",
    "SessionState",
    "ToolDescriptor",
    "ToolRegistry",
    "Transcript",
    "Unavailable",
    "UnavailableReason",
]
