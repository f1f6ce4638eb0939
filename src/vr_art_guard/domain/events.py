"""Events published while sessions and protection cycles progress."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class EventType(str, Enum):
    """Observable session and protection events."""

    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    TOOL_CHANGED = "tool_changed"
    MILESTONE_REACHED = "milestone_reached"
    PROTECTION_STARTED = "protection_started"
    PHASE_COMPLETED = "phase_completed"
    PROTECTION_COMPLETED = "protection_completed"
    FALLBACK_WRITTEN = "fallback_written"
    TRIGGER_IGNORED = "trigger_ignored"


@dataclass(frozen=True)
class ProtectionEvent:
    """A single observation about a session."""

    type: EventType
    session_id: str | None
    payload: dict[str, object] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
