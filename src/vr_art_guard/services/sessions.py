"""Creation session lifecycle: Idle -> Active -> Processing -> Idle."""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vr_art_guard.domain.events import EventType
from vr_art_guard.domain.sessions import (
    CreationSession,
    Position,
    ProtectionTrigger,
    SessionState,
)
from vr_art_guard.services.complexity import ActivityComplexityEstimator
from vr_art_guard.services.events import EventBus
from vr_art_guard.services.performance import PerformanceTracker
from vr_art_guard.services.pipeline import CycleOutcome, ProtectionPipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPolicy:
    """When protection cycles are triggered automatically."""

    session_timeout_minutes: float = 30.0
    protect_on_milestone: bool = True
    protect_on_tool_change: bool = False
    auto_protection_interval_seconds: float | None = None
    stroke_milestone_interval: int = 25
    complexity_threshold: float = 0.3
    time_milestone_seconds: float = 300.0


def generate_session_id(now: datetime) -> str:
    """Build a session id such as ``VR_20250101120000_4821``."""
    return f"VR_{now:%Y%m%d%H%M%S}_{random.randint(1000, 9999)}"  # noqa: S311


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionManager:
    """Owns the current creation session and hands it to the pipeline."""

    pipeline: ProtectionPipeline
    complexity_estimator: ActivityComplexityEstimator = field(
        default_factory=ActivityComplexityEstimator
    )
    events: EventBus = field(default_factory=EventBus)
    performance: PerformanceTracker = field(default_factory=PerformanceTracker)
    policy: SessionPolicy = field(default_factory=SessionPolicy)
    artist_id: str = "Artist_001"
    artist_name: str = "Unknown Creator"
    project_name: str = "VR_Artwork"
    clock: Callable[[], datetime] = _utcnow
    id_factory: Callable[[datetime], str] = generate_session_id

    state: SessionState = SessionState.IDLE
    session: CreationSession | None = None
    last_outcome: CycleOutcome | None = None
    _stroke_milestones: int = 0
    _fired_milestones: set[str] = field(default_factory=set)

    async def start_session(self) -> CreationSession:
        """Open a new session; a no-op returning the current one if not idle."""
        if self.state is not SessionState.IDLE and self.session is not None:
            logger.warning("Session %s is still open", self.session.id)
            self._ignored("start_session", "session_open")
            return self.session

        now = self.clock()
        self.session = CreationSession(
            id=self.id_factory(now),
            started_at=now,
            artist_id=self.artist_id,
            artist_name=self.artist_name,
            project_name=self.project_name,
        )
        self.last_outcome = None
        self._stroke_milestones = 0
        self._fired_milestones = set()
        self.state = SessionState.ACTIVE

        await self.pipeline.delivery.negotiate()
        logger.info("Creation session started: %s", self.session.id)
        self.events.emit(EventType.SESSION_STARTED, self.session.id)
        return self.session

    def record_stroke(self, position: Position | None = None) -> int:
        """Count a brush stroke; returns the session's stroke total."""
        session = self._open_session()
        if session is None:
            self._ignored("record_stroke", "no_active_session")
            return 0
        session.brush_strokes += 1
        if position is not None:
            session.add_hotspot(position)
        self._refresh(session)
        return session.brush_strokes

    async def change_tool(self, tool: str) -> CycleOutcome | None:
        """Switch the current tool, protecting afterwards when configured."""
        session = self._open_session()
        if session is None:
            self._ignored("change_tool", "no_active_session")
            return None
        if tool == session.current_tool:
            return None
        session.current_tool = tool
        session.tools_used.add(tool)
        logger.info("Tool changed to %s", tool)
        self.events.emit(EventType.TOOL_CHANGED, session.id, tool=tool)
        if self.policy.protect_on_tool_change:
            return await self._run_cycle(ProtectionTrigger.TOOL_CHANGE)
        return None

    async def request_protection(self) -> CycleOutcome | None:
        """Run a manual protection cycle."""
        return await self._run_cycle(ProtectionTrigger.MANUAL)

    async def end_session(self) -> CycleOutcome | None:
        """Run the final protection cycle and close the session."""
        return await self._run_cycle(ProtectionTrigger.SESSION_END)

    async def tick(self) -> CycleOutcome | None:
        """Check timeout, milestones and the auto interval for the session."""
        if self.state is not SessionState.ACTIVE or self.session is None:
            return None
        session = self.session
        self._refresh(session)

        if session.duration_seconds >= self.policy.session_timeout_minutes * 60:
            logger.warning("Session %s timed out", session.id)
            return await self._run_cycle(ProtectionTrigger.TIMEOUT)

        if self.policy.protect_on_milestone:
            milestone = self._next_milestone(session)
            if milestone is not None:
                logger.info("Creation milestone reached: %s", milestone)
                self.events.emit(
                    EventType.MILESTONE_REACHED, session.id, milestone=milestone
                )
                return await self._run_cycle(ProtectionTrigger.MILESTONE)

        interval = self.policy.auto_protection_interval_seconds
        if interval is not None:
            reference = session.last_protected_at or session.started_at
            if (self.clock() - reference).total_seconds() >= interval:
                return await self._run_cycle(ProtectionTrigger.AUTO_INTERVAL)
        return None

    def status(self) -> dict[str, object]:
        """Return a JSON-friendly status view."""
        outcome = self.last_outcome
        return {
            "state": self.state.value,
            "session": self.session.snapshot() if self.session else None,
            "batch_supported": self.pipeline.delivery.batch_supported,
            "last_cycle": summarize_outcome(outcome) if outcome else None,
            "performance": self.performance.snapshot(),
        }

    async def _run_cycle(self, trigger: ProtectionTrigger) -> CycleOutcome | None:
        if self.state is SessionState.PROCESSING:
            logger.warning("Protection already running, ignoring %s", trigger.value)
            self._ignored(trigger.value, "cycle_in_progress")
            return None
        session = self._open_session()
        if session is None:
            logger.info("No active session, ignoring %s", trigger.value)
            self._ignored(trigger.value, "no_active_session")
            return None

        self.state = SessionState.PROCESSING
        self._refresh(session)
        logger.info(
            "Protection started for %s (trigger=%s, complexity=%.3f)",
            session.id,
            trigger.value,
            session.complexity,
        )
        self.events.emit(
            EventType.PROTECTION_STARTED,
            session.id,
            trigger=trigger.value,
            version=session.version_number,
        )
        completed = False
        try:
            outcome = await self.pipeline.run(session, trigger)
            completed = True
        finally:
            self.state = SessionState.ACTIVE
            if completed:
                session.version_number += 1
                session.protection_count += 1
                session.last_protected_at = self.clock()
            if trigger.ends_session:
                self._close(session)

        self.last_outcome = outcome
        self.performance.record(
            outcome.report.processing_duration_seconds, outcome.report.protected_count
        )
        self.events.emit(
            EventType.PROTECTION_COMPLETED, session.id, **summarize_outcome(outcome)
        )
        if outcome.fallback_written:
            self.events.emit(
                EventType.FALLBACK_WRITTEN,
                session.id,
                location=str(outcome.fallback.location) if outcome.fallback else None,
            )
        return outcome

    def _open_session(self) -> CreationSession | None:
        if self.state is SessionState.IDLE or self.session is None:
            return None
        if self.session.closed:
            return None
        return self.session

    def _close(self, session: CreationSession) -> None:
        session.closed = True
        self.state = SessionState.IDLE
        logger.info(
            "Creation session ended: %s after %s cycles",
            session.id,
            session.protection_count,
        )
        self.events.emit(
            EventType.SESSION_ENDED,
            session.id,
            protection_count=session.protection_count,
        )

    def _refresh(self, session: CreationSession) -> None:
        session.duration_seconds = (self.clock() - session.started_at).total_seconds()
        session.complexity = self.complexity_estimator.estimate(session)

    def _next_milestone(self, session: CreationSession) -> str | None:
        interval = self.policy.stroke_milestone_interval
        if interval > 0:
            reached = session.brush_strokes // interval
            if reached > self._stroke_milestones:
                self._stroke_milestones = reached
                return f"strokes_{reached * interval}"
        if (
            "complexity" not in self._fired_milestones
            and session.complexity >= self.policy.complexity_threshold
        ):
            self._fired_milestones.add("complexity")
            return "complexity"
        if (
            "time" not in self._fired_milestones
            and session.duration_seconds >= self.policy.time_milestone_seconds
        ):
            self._fired_milestones.add("time")
            return "time"
        return None

    def _ignored(self, trigger: str, reason: str) -> None:
        self.events.emit(
            EventType.TRIGGER_IGNORED,
            self.session.id if self.session else None,
            trigger=trigger,
            reason=reason,
        )


def summarize_outcome(outcome: CycleOutcome) -> dict[str, object]:
    """Flatten a cycle outcome for events and status views."""
    report = outcome.report
    return {
        "version": report.version_number,
        "trigger": report.trigger,
        "total_layers": report.total_layers,
        "protected_layers": report.protected_count,
        "verification_tier": outcome.tier.value,
        "confidence": outcome.tier.confidence,
        "fallback_written": outcome.fallback_written,
        "primary_layer_id": outcome.primary_layer_id,
        "processing_duration_seconds": round(report.processing_duration_seconds, 3),
        "report_location": outcome.report_location,
    }
