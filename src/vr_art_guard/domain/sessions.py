"""Domain models for creation sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

Position = tuple[float, float, float]

MAX_HOTSPOTS = 100


class SessionState(str, Enum):
    """Lifecycle states of the session manager."""

    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    PROCESSING = "PROCESSING"


class ProtectionTrigger(str, Enum):
    """Why a protection cycle was requested."""

    MANUAL = "manual"
    MILESTONE = "milestone"
    TOOL_CHANGE = "tool_change"
    AUTO_INTERVAL = "auto_interval"
    TIMEOUT = "timeout"
    SESSION_END = "session_end"

    @property
    def ends_session(self) -> bool:
        return self in {ProtectionTrigger.TIMEOUT, ProtectionTrigger.SESSION_END}


@dataclass
class CreationSession:
    """A single artwork creation session.

    Mutated only by the session manager.
    """

    id: str
    started_at: datetime
    artist_id: str
    artist_name: str
    project_name: str
    version_number: int = 1
    complexity: float = 0.0
    duration_seconds: float = 0.0
    tools_used: set[str] = field(default_factory=set)
    current_tool: str = "Default_Brush"
    brush_strokes: int = 0
    hotspots: list[Position] = field(default_factory=list)
    primary_area: Position = (0.0, 0.0, 0.0)
    last_protected_at: datetime | None = None
    protection_count: int = 0
    closed: bool = False

    def add_hotspot(self, position: Position) -> None:
        """Record a brush position and refresh the creation centroid."""
        self.hotspots.append(position)
        if len(self.hotspots) > MAX_HOTSPOTS:
            del self.hotspots[0]
        count = len(self.hotspots)
        self.primary_area = (
            sum(point[0] for point in self.hotspots) / count,
            sum(point[1] for point in self.hotspots) / count,
            sum(point[2] for point in self.hotspots) / count,
        )

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-friendly view of the session."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "artist_id": self.artist_id,
            "artist_name": self.artist_name,
            "project_name": self.project_name,
            "version_number": self.version_number,
            "complexity": round(self.complexity, 4),
            "duration_seconds": round(self.duration_seconds, 2),
            "tools_used": sorted(self.tools_used),
            "current_tool": self.current_tool,
            "brush_strokes": self.brush_strokes,
            "protection_count": self.protection_count,
            "closed": self.closed,
        }
