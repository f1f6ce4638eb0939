"""Shared test fixtures."""

import io
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from PIL import Image

from vr_art_guard.config import Settings
from vr_art_guard.containers import AppContainer, build_container
from vr_art_guard.domain.layers import LAYER_MATRIX_PRESETS, Direction, MapType, layer_id
from vr_art_guard.domain.protection import (
    CaptureJob,
    FallbackRecord,
    ProtectionReport,
)
from vr_art_guard.domain.sessions import CreationSession
from vr_art_guard.services.aggregation import ResultAggregator
from vr_art_guard.services.batching import BatchAssembler
from vr_art_guard.services.capture import (
    CaptureBuffer,
    CaptureBufferPool,
    CaptureOrchestrator,
    ImageSource,
)
from vr_art_guard.services.delivery import (
    DeliveryClient,
    ProtectionServiceClient,
    RetryPolicy,
)
from vr_art_guard.services.errors import ResponseParseError, TransportError
from vr_art_guard.services.events import EventBus, RecentEvents
from vr_art_guard.services.pipeline import ProtectionPipeline
from vr_art_guard.services.quality import QualityScorer
from vr_art_guard.services.reports import BackupWriter, ReportStore
from vr_art_guard.services.tiers import VerificationTierCalculator


def make_png(
    color: tuple[int, int, int, int] = (200, 60, 40, 255), size: int = 8
) -> bytes:
    """Encode a solid-colour RGBA PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_job(
    direction: Direction = Direction.MAIN_VIEW,
    map_type: MapType = MapType.DEPTH,
    image_bytes: bytes | None = None,
    strength: float = 2.0,
    message: str | None = None,
) -> CaptureJob:
    return CaptureJob(
        direction=direction,
        map_type=map_type,
        image_bytes=make_png() if image_bytes is None else image_bytes,
        strength=strength,
        message=(
            message if message is not None else f"{direction.tag}_{map_type.tag}_VR_TEST"
        ),
    )


def make_session(session_id: str = "VR_20260101120000_1234") -> CreationSession:
    return CreationSession(
        id=session_id,
        started_at=datetime(2026, 1, 1, 12, 0, tzinfo=UTC),
        artist_id="Artist_001",
        artist_name="Test Artist",
        project_name="Test_Project",
    )


@dataclass
class FakeProtectionService(ProtectionServiceClient):
    """Scriptable protection service that records every call."""

    batch_support: bool | None = True
    health_error: Exception | None = None
    batch_responses: list[object] = field(default_factory=list)
    failing_layers: set[str] = field(default_factory=set)
    unreadable_layers: set[str] = field(default_factory=set)
    verify_body: object = field(
        default_factory=lambda: {"detected": True, "confidence": 0.93, "message": "ok"}
    )
    batch_calls: list[dict[str, object]] = field(default_factory=list)
    watermark_calls: list[dict[str, object]] = field(default_factory=list)
    verify_calls: list[dict[str, object]] = field(default_factory=list)

    async def health(self) -> object:
        if self.health_error is not None:
            raise self.health_error
        return {"status": "ok", "batch_support": self.batch_support}

    async def watermark_batch(self, body: dict[str, object]) -> object:
        self.batch_calls.append(body)
        if self.batch_responses:
            response = self.batch_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        layers = body["layers"]
        assert isinstance(layers, list)
        return {
            "success": True,
            "session_id": body["session_id"],
            "results": [
                {
                    "layer_id": layer["layer_id"],
                    "success": True,
                    "bit_accuracy": 0.98,
                    "watermark_hash": f"hash-{layer['layer_id']}",
                }
                for layer in layers
            ],
        }

    async def watermark(self, body: dict[str, object]) -> object:
        self.watermark_calls.append(body)
        current = str(body["layerId"])
        if current in self.failing_layers:
            raise TransportError("service unavailable", status_code=503)
        if current in self.unreadable_layers:
            raise ResponseParseError(f"{current} returned invalid JSON")
        return {"success": True, "bit_accuracy": 0.97, "hash": f"hash-{current}"}

    async def verify(self, body: dict[str, object]) -> object:
        self.verify_calls.append(body)
        return self.verify_body


@dataclass
class FakeImageSource(ImageSource):
    """Produces a small PNG per layer; listed layers raise instead."""

    failing_layers: set[str] = field(default_factory=set)
    captured: list[str] = field(default_factory=list)

    async def capture(
        self, direction: Direction, map_type: MapType, buffer: CaptureBuffer
    ) -> bytes:
        current = layer_id(direction, map_type)
        self.captured.append(current)
        if current in self.failing_layers:
            raise RuntimeError(f"render failed for {current}")
        buffer.data[:] = make_png()
        return bytes(buffer.data)


@dataclass
class InMemoryReportStore(ReportStore):
    """Report store that keeps the latest report per session version."""

    reports: dict[tuple[str, int], ProtectionReport] = field(default_factory=dict)
    primaries: dict[str, str | None] = field(default_factory=dict)

    def save_report(
        self,
        session: CreationSession,
        report: ProtectionReport,
        primary: CaptureJob | None,
    ) -> str:
        self.reports[(report.session_id, report.version_number)] = report
        self.primaries[report.session_id] = primary.layer_id if primary else None
        return f"memory://{report.session_id}/v{report.version_number}"


@dataclass
class InMemoryBackupWriter(BackupWriter):
    """Backup writer that records what would have been written."""

    writes: list[tuple[str, list[str], str]] = field(default_factory=list)
    error: OSError | None = None

    def write(
        self, session_id: str, jobs: list[CaptureJob], reason: str
    ) -> FallbackRecord:
        if self.error is not None:
            raise self.error
        self.writes.append((session_id, [job.layer_id for job in jobs], reason))
        return FallbackRecord(
            session_id=session_id,
            location=Path("/backups") / session_id,
            files_written=len(jobs),
            reason=reason,
        )


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def no_sleep(_delay: float) -> None:
    return None


def build_pipeline(  # noqa: PLR0913
    service: FakeProtectionService,
    *,
    image_source: FakeImageSource | None = None,
    backup_writer: InMemoryBackupWriter | None = None,
    report_store: ReportStore | None = None,
    matrix: str = "core",
    events: EventBus | None = None,
) -> ProtectionPipeline:
    delivery = DeliveryClient(
        service=service,
        backup_writer=backup_writer or InMemoryBackupWriter(),
        retry_policy=RetryPolicy(max_attempts=3, delay_seconds=1.0),
        batch_supported=bool(service.batch_support),
        sleep=no_sleep,
    )
    return ProtectionPipeline(
        orchestrator=CaptureOrchestrator(
            image_source=image_source or FakeImageSource(),
            matrix=LAYER_MATRIX_PRESETS[matrix],
            pool=CaptureBufferPool(size=8, resolution=64),
        ),
        scorer=QualityScorer(),
        assembler=BatchAssembler(creator_id="Artist_001"),
        delivery=delivery,
        aggregator=ResultAggregator(),
        tier_calculator=VerificationTierCalculator(),
        report_store=report_store,
        events=events or EventBus(),
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        control_token="control-token",
        protection_service_url="http://watermark.test",
        retry_delay_seconds=0.0,
        reports_dir=tmp_path / "reports",
        backup_dir=tmp_path / "backups",
        image_source_dir=tmp_path / "captures",
    )


@pytest.fixture
def fake_service() -> FakeProtectionService:
    return FakeProtectionService()


@pytest.fixture
def image_source() -> FakeImageSource:
    return FakeImageSource()


@pytest.fixture
def report_store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def backup_writer() -> InMemoryBackupWriter:
    return InMemoryBackupWriter()


@pytest.fixture
def recorder() -> RecentEvents:
    return RecentEvents(max_events=500)


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    fake_service: FakeProtectionService,
    image_source: FakeImageSource,
    report_store: InMemoryReportStore,
    backup_writer: InMemoryBackupWriter,
) -> AppContainer:
    return build_container(
        settings,
        service_client=fake_service,
        image_source=image_source,
        report_store=report_store,
        backup_writer=backup_writer,
    )
