"""Tests for the protection pipeline."""

import asyncio
import math

import httpx

from tests.conftest import (
    FakeImageSource,
    FakeProtectionService,
    InMemoryBackupWriter,
    InMemoryReportStore,
    build_pipeline,
    make_session,
)
from vr_art_guard.adapters.protection_service_client import (
    HttpxProtectionServiceClient,
)
from vr_art_guard.domain.events import EventType
from vr_art_guard.domain.layers import MapType
from vr_art_guard.domain.protection import VerificationTier
from vr_art_guard.domain.sessions import ProtectionTrigger
from vr_art_guard.services.errors import TransportError
from vr_art_guard.services.events import EventBus, RecentEvents
from vr_art_guard.services.pipeline import PipelinePhase

FULL_RUN = (
    PipelinePhase.CAPTURE,
    PipelinePhase.SCORE,
    PipelinePhase.ASSEMBLE,
    PipelinePhase.DELIVER,
    PipelinePhase.AGGREGATE,
    PipelinePhase.TIER,
    PipelinePhase.PERSIST,
)


def test_all_layers_protected_gives_perfect_tier() -> None:
    service = FakeProtectionService()
    store = InMemoryReportStore()
    events = EventBus()
    recorder = RecentEvents(max_events=100)
    events.subscribe(recorder, EventType.PHASE_COMPLETED)
    pipeline = build_pipeline(service, report_store=store, events=events)
    session = make_session()

    outcome = asyncio.run(pipeline.run(session, ProtectionTrigger.MANUAL))

    assert len(service.batch_calls) == 1
    assert service.watermark_calls == []
    assert outcome.tier is VerificationTier.PERFECT
    assert outcome.report.total_layers == 18
    assert outcome.report.protected_count == 18
    assert outcome.delivered is True
    assert outcome.fallback is None
    assert outcome.phases == FULL_RUN
    assert outcome.primary_layer_id is not None
    assert outcome.report_location == f"memory://{session.id}/v1"
    assert store.reports[(session.id, 1)].trigger == "manual"
    assert [event.payload["phase"] for event in recorder.events] == [
        phase.value for phase in FULL_RUN
    ]


def test_unreachable_service_writes_fallback_after_three_attempts() -> None:
    service = FakeProtectionService(batch_responses=[TransportError("down")] * 3)
    backup_writer = InMemoryBackupWriter()
    store = InMemoryReportStore()
    pipeline = build_pipeline(service, backup_writer=backup_writer, report_store=store)

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.SESSION_END))

    assert len(service.batch_calls) == 3
    assert service.watermark_calls == []
    assert len(backup_writer.writes[0][1]) == 18
    assert outcome.fallback_written is True
    assert outcome.fallback is not None
    assert outcome.fallback.files_written == 18
    assert outcome.tier is VerificationTier.NONE
    assert outcome.report.trigger == "session_end"
    assert outcome.phases == FULL_RUN
    assert len(store.reports) == 1


def test_partial_individual_results_set_tier() -> None:
    failing = {
        f"{direction}_{map_name}"
        for direction in ("MainView", "DetailView")
        for map_name in ("Depth", "Normal", "SSAO")
    }
    service = FakeProtectionService(batch_support=False, failing_layers=failing)
    pipeline = build_pipeline(service)
    asyncio.run(pipeline.delivery.negotiate())

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.MILESTONE))

    # 12/18 delivered is below the 80% bar, so every attempt is replayed.
    assert len(service.watermark_calls) == 54
    assert outcome.fallback_written is True
    assert outcome.report.protected_count == 12
    assert outcome.tier is VerificationTier.FORENSIC


def test_serialization_error_skips_delivery() -> None:
    service = FakeProtectionService()
    backup_writer = InMemoryBackupWriter()
    pipeline = build_pipeline(service, backup_writer=backup_writer)
    pipeline.orchestrator.strengths = {MapType.DEPTH: math.nan}

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.MANUAL))

    assert service.batch_calls == []
    assert service.watermark_calls == []
    assert outcome.fallback_written is True
    assert backup_writer.writes[0][2] == "serialization_error"
    assert PipelinePhase.DELIVER not in outcome.phases
    assert outcome.phases[-1] is PipelinePhase.PERSIST
    assert outcome.tier is VerificationTier.NONE


def test_failed_captures_are_still_sent() -> None:
    service = FakeProtectionService()
    source = FakeImageSource(failing_layers={"TopView_Depth"})
    pipeline = build_pipeline(service, image_source=source)

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.MANUAL))

    layers = service.batch_calls[0]["layers"]
    assert len(layers) == 18  # type: ignore[arg-type]
    empty = [layer for layer in layers if not layer["image_base64"]]  # type: ignore[union-attr]
    assert [layer["layer_id"] for layer in empty] == ["TopView_Depth"]
    assert outcome.tier is VerificationTier.PERFECT


def test_report_store_failure_does_not_fail_cycle() -> None:
    class BrokenStore(InMemoryReportStore):
        def save_report(self, session, report, primary):  # type: ignore[no-untyped-def]
            raise OSError("read-only filesystem")

    pipeline = build_pipeline(FakeProtectionService(), report_store=BrokenStore())

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.MANUAL))

    assert outcome.report_location is None
    assert outcome.tier is VerificationTier.PERFECT


def test_extended_matrix_with_plain_images() -> None:
    service = FakeProtectionService()
    pipeline = build_pipeline(service, matrix="core_with_image")

    outcome = asyncio.run(pipeline.run(make_session(), ProtectionTrigger.MANUAL))

    assert outcome.report.total_layers == 24
    assert outcome.primary_layer_id is not None
    assert outcome.primary_layer_id.endswith("_Artwork")


def test_unexpected_client_error_still_falls_back() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.InvalidURL("bad service url")

    client = HttpxProtectionServiceClient(
        base_url="http://watermark.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    backup_writer = InMemoryBackupWriter()
    pipeline = build_pipeline(FakeProtectionService(), backup_writer=backup_writer)
    pipeline.delivery.service = client

    async def scenario():  # type: ignore[no-untyped-def]
        supported = await pipeline.delivery.negotiate()
        outcome = await pipeline.run(make_session(), ProtectionTrigger.MANUAL)
        return supported, outcome

    supported, outcome = asyncio.run(scenario())

    assert supported is False
    assert outcome.fallback_written is True
    assert len(backup_writer.writes[0][1]) == 18
    assert outcome.tier is VerificationTier.NONE
