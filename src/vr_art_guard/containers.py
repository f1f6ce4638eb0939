"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from vr_art_guard.adapters.directory_image_source import DirectoryImageSource
from vr_art_guard.adapters.filesystem_report_store import (
    FilesystemReportStore,
    LocalBackupWriter,
)
from vr_art_guard.adapters.protection_service_client import (
    HttpxProtectionServiceClient,
)
from vr_art_guard.adapters.supabase_report_repository import SupabaseReportRepository
from vr_art_guard.config import Settings, parse_layer_matrix, parse_map_strengths
from vr_art_guard.domain.protection import DEFAULT_TIER_THRESHOLDS
from vr_art_guard.services.aggregation import ResultAggregator
from vr_art_guard.services.batching import BatchAssembler
from vr_art_guard.services.capture import (
    CaptureBufferPool,
    CaptureOrchestrator,
    ImageSource,
)
from vr_art_guard.services.complexity import ActivityComplexityEstimator
from vr_art_guard.services.delivery import (
    DeliveryClient,
    ProtectionServiceClient,
    RetryPolicy,
)
from vr_art_guard.services.events import EventBus, RecentEvents
from vr_art_guard.services.performance import PerformanceTracker
from vr_art_guard.services.pipeline import ProtectionPipeline
from vr_art_guard.services.quality import QualityScorer
from vr_art_guard.services.reports import BackupWriter, ReportStore
from vr_art_guard.services.sessions import SessionManager, SessionPolicy
from vr_art_guard.services.tiers import VerificationTierCalculator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    service_client: ProtectionServiceClient
    events: EventBus
    recent_events: RecentEvents
    delivery_client: DeliveryClient
    pipeline: ProtectionPipeline
    session_manager: SessionManager
    close_resources: Callable[[], Awaitable[None]]


def build_container(  # noqa: PLR0913
    settings: Settings | None = None,
    *,
    service_client: ProtectionServiceClient | None = None,
    image_source: ImageSource | None = None,
    report_store: ReportStore | None = None,
    backup_writer: BackupWriter | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    if report_store is None:
        report_store = _build_report_store(resolved_settings)
    http_client: HttpxProtectionServiceClient | None = None
    if service_client is None:
        http_client = HttpxProtectionServiceClient.create(
            resolved_settings.protection_service_url,
            timeout=resolved_settings.service_timeout_seconds,
        )
        service_client = http_client
    if image_source is None:
        image_source = DirectoryImageSource(resolved_settings.image_source_dir)
    if backup_writer is None:
        backup_writer = LocalBackupWriter(resolved_settings.backup_dir)

    events = EventBus()
    recent_events = RecentEvents()
    events.subscribe(recent_events)

    orchestrator = CaptureOrchestrator(
        image_source=image_source,
        matrix=parse_layer_matrix(resolved_settings.layer_matrix),
        pool=CaptureBufferPool(
            size=resolved_settings.capture_pool_size,
            resolution=resolved_settings.capture_resolution,
        ),
        strengths=parse_map_strengths(resolved_settings.map_strengths),
        yield_every=resolved_settings.capture_yield_every,
    )
    delivery_client = DeliveryClient(
        service=service_client,
        backup_writer=backup_writer,
        retry_policy=RetryPolicy(
            max_attempts=resolved_settings.max_retry_attempts,
            delay_seconds=resolved_settings.retry_delay_seconds,
            backoff_factor=resolved_settings.retry_backoff_factor,
        ),
        success_ratio=resolved_settings.individual_success_ratio,
        yield_every=resolved_settings.individual_yield_every,
    )
    pipeline = ProtectionPipeline(
        orchestrator=orchestrator,
        scorer=QualityScorer(),
        assembler=BatchAssembler(creator_id=resolved_settings.artist_id),
        delivery=delivery_client,
        aggregator=ResultAggregator(DEFAULT_TIER_THRESHOLDS),
        tier_calculator=VerificationTierCalculator(DEFAULT_TIER_THRESHOLDS),
        report_store=report_store,
        events=events,
    )
    session_manager = SessionManager(
        pipeline=pipeline,
        events=events,
        policy=SessionPolicy(
            session_timeout_minutes=resolved_settings.session_timeout_minutes,
            protect_on_milestone=resolved_settings.protect_on_milestone,
            protect_on_tool_change=resolved_settings.protect_on_tool_change,
            auto_protection_interval_seconds=(
                resolved_settings.auto_protection_interval_seconds
            ),
            stroke_milestone_interval=resolved_settings.stroke_milestone_interval,
            complexity_threshold=resolved_settings.complexity_milestone,
            time_milestone_seconds=resolved_settings.time_milestone_seconds,
        ),
        performance=PerformanceTracker(
            max_samples=resolved_settings.performance_history_size,
            target_seconds=resolved_settings.performance_target_seconds,
        ),
        artist_id=resolved_settings.artist_id,
        artist_name=resolved_settings.artist_name,
        project_name=resolved_settings.project_name,
    )

    async def close_resources() -> None:
        if http_client is not None:
            await http_client.close()

    return AppContainer(
        settings=resolved_settings,
        service_client=service_client,
        events=events,
        recent_events=recent_events,
        delivery_client=delivery_client,
        pipeline=pipeline,
        session_manager=session_manager,
        close_resources=close_resources,
    )


def _build_report_store(settings: Settings) -> ReportStore:
    if settings.report_store == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("Supabase report store needs SUPABASE_URL and key")
        return SupabaseReportRepository(
            create_client(settings.supabase_url, settings.supabase_service_key)
        )
    if settings.report_store == "filesystem":
        return FilesystemReportStore(settings.reports_dir)
    raise ValueError(f"Unknown report store {settings.report_store!r}")
