"""Phase-by-phase protection cycle: capture, assemble, deliver, aggregate."""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from vr_art_guard.domain.events import EventType
from vr_art_guard.domain.protection import (
    CaptureJob,
    FallbackRecord,
    ProtectionReport,
    ProtectionRequest,
    VerificationTier,
)
from vr_art_guard.domain.sessions import CreationSession, ProtectionTrigger
from vr_art_guard.services.aggregation import ResultAggregator
from vr_art_guard.services.batching import BatchAssembler
from vr_art_guard.services.capture import CaptureOrchestrator
from vr_art_guard.services.delivery import (
    DeliveryClient,
    DeliveryOutcome,
    FallbackWritten,
)
from vr_art_guard.services.errors import SerializationError
from vr_art_guard.services.events import EventBus
from vr_art_guard.services.quality import QualityScorer
from vr_art_guard.services.reports import ReportStore
from vr_art_guard.services.tiers import VerificationTierCalculator

logger = logging.getLogger(__name__)


class PipelinePhase(str, Enum):
    """Phases of one protection cycle, in execution order."""

    CAPTURE = "capture"
    SCORE = "score"
    ASSEMBLE = "assemble"
    DELIVER = "deliver"
    AGGREGATE = "aggregate"
    TIER = "tier"
    PERSIST = "persist"
    DONE = "done"


@dataclass(frozen=True)
class CycleOutcome:
    """Result of a finished protection cycle."""

    report: ProtectionReport
    tier: VerificationTier
    fallback: FallbackRecord | None
    fallback_written: bool
    primary_layer_id: str | None
    primary_score: float
    report_location: str | None
    phases: tuple[PipelinePhase, ...]

    @property
    def delivered(self) -> bool:
        return not self.fallback_written


@dataclass
class _CycleState:
    session: CreationSession
    trigger: ProtectionTrigger
    started: float
    jobs: list[CaptureJob] = field(default_factory=list)
    primary: CaptureJob | None = None
    primary_score: float = 0.0
    request: ProtectionRequest | None = None
    delivery: DeliveryOutcome | None = None
    fallback: FallbackRecord | None = None
    fallback_written: bool = False
    report: ProtectionReport | None = None
    tier: VerificationTier = VerificationTier.NONE
    report_location: str | None = None
    phases: list[PipelinePhase] = field(default_factory=list)


@dataclass
class ProtectionPipeline:
    """Runs one protection cycle as an explicit sequence of phases."""

    orchestrator: CaptureOrchestrator
    scorer: QualityScorer
    assembler: BatchAssembler
    delivery: DeliveryClient
    aggregator: ResultAggregator
    tier_calculator: VerificationTierCalculator
    report_store: ReportStore | None = None
    events: EventBus = field(default_factory=EventBus)
    clock: Callable[[], float] = time.perf_counter

    async def run(
        self, session: CreationSession, trigger: ProtectionTrigger
    ) -> CycleOutcome:
        """Execute every phase and return the cycle outcome."""
        handlers: dict[PipelinePhase, Callable[[_CycleState], Awaitable[PipelinePhase]]] = {
            PipelinePhase.CAPTURE: self._capture,
            PipelinePhase.SCORE: self._score,
            PipelinePhase.ASSEMBLE: self._assemble,
            PipelinePhase.DELIVER: self._deliver,
            PipelinePhase.AGGREGATE: self._aggregate,
            PipelinePhase.TIER: self._tier,
            PipelinePhase.PERSIST: self._persist,
        }
        state = _CycleState(session=session, trigger=trigger, started=self.clock())
        phase = PipelinePhase.CAPTURE
        while phase is not PipelinePhase.DONE:
            next_phase = await handlers[phase](state)
            state.phases.append(phase)
            self.events.emit(
                EventType.PHASE_COMPLETED,
                session.id,
                phase=phase.value,
                next_phase=next_phase.value,
            )
            phase = next_phase

        assert state.report is not None
        return CycleOutcome(
            report=state.report,
            tier=state.tier,
            fallback=state.fallback,
            fallback_written=state.fallback_written,
            primary_layer_id=state.primary.layer_id if state.primary else None,
            primary_score=state.primary_score,
            report_location=state.report_location,
            phases=tuple(state.phases),
        )

    async def _capture(self, state: _CycleState) -> PipelinePhase:
        state.jobs = await self.orchestrator.produce_jobs(state.session)
        return PipelinePhase.SCORE

    async def _score(self, state: _CycleState) -> PipelinePhase:
        try:
            state.primary, state.primary_score = self.scorer.select_primary(state.jobs)
        except Exception:
            logger.exception("Primary view selection failed")
        return PipelinePhase.ASSEMBLE

    async def _assemble(self, state: _CycleState) -> PipelinePhase:
        try:
            state.request = self.assembler.assemble(
                state.session.id, state.jobs, state.session.version_number
            )
        except SerializationError as exc:
            logger.error("Batch assembly failed: %s", exc)
            state.fallback = self.delivery.write_fallback(
                state.session.id, state.jobs, reason="serialization_error"
            )
            state.fallback_written = True
            return PipelinePhase.AGGREGATE
        return PipelinePhase.DELIVER

    async def _deliver(self, state: _CycleState) -> PipelinePhase:
        assert state.request is not None
        state.delivery = await self.delivery.deliver(state.request)
        if isinstance(state.delivery, FallbackWritten):
            state.fallback = state.delivery.record
            state.fallback_written = True
        return PipelinePhase.AGGREGATE

    async def _aggregate(self, state: _CycleState) -> PipelinePhase:
        replies = state.delivery.replies if state.delivery is not None else []
        state.report = self.aggregator.aggregate(
            session_id=state.session.id,
            jobs=state.jobs,
            replies=replies,
            processing_duration_seconds=self.clock() - state.started,
            version_number=state.session.version_number,
            trigger=state.trigger.value,
            primary_layer_id=state.primary.layer_id if state.primary else None,
        )
        return PipelinePhase.TIER

    async def _tier(self, state: _CycleState) -> PipelinePhase:
        assert state.report is not None
        state.tier = self.tier_calculator.calculate(
            state.report.protected_count, state.report.total_layers
        )
        logger.info(
            "Session %s v%s: %s",
            state.session.id,
            state.session.version_number,
            self.tier_calculator.describe(
                state.report.protected_count, state.report.total_layers
            ),
        )
        return PipelinePhase.PERSIST

    async def _persist(self, state: _CycleState) -> PipelinePhase:
        assert state.report is not None
        if self.report_store is None:
            return PipelinePhase.DONE
        try:
            state.report_location = self.report_store.save_report(
                state.session, state.report, state.primary
            )
        except Exception:
            logger.exception("Saving report for session %s failed", state.session.id)
        return PipelinePhase.DONE
