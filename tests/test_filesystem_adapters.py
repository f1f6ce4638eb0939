"""Tests for filesystem-backed adapters."""

import asyncio
import json
from pathlib import Path

import pytest

from tests.conftest import make_job, make_png, make_session
from vr_art_guard.adapters.directory_image_source import DirectoryImageSource
from vr_art_guard.adapters.filesystem_report_store import (
    FilesystemReportStore,
    LocalBackupWriter,
)
from vr_art_guard.domain.layers import Direction, MapType
from vr_art_guard.domain.protection import LayerResult, ProtectionReport
from vr_art_guard.services.capture import CaptureBuffer


def _report(session_id: str, version: int = 1) -> ProtectionReport:
    return ProtectionReport(
        session_id=session_id,
        total_layers=3,
        results={
            "MainView_Depth": LayerResult("MainView_Depth", True, 0.98, "h1", robustness=1.0),
            "MainView_Normal": LayerResult("MainView_Normal", True, 0.97, "h2"),
            "MainView_SSAO": LayerResult(
                "MainView_SSAO", False, 0.0, "", error="embed failed"
            ),
        },
        processing_duration_seconds=2.5,
        version_number=version,
        primary_layer_id="MainView_Depth",
    )


def test_report_store_writes_layout(tmp_path: Path) -> None:
    session = make_session()
    store = FilesystemReportStore(tmp_path)
    primary = make_job(image_bytes=make_png())

    location = store.save_report(session, _report(session.id), primary)

    directory = tmp_path / session.id / "protection"
    assert location == str(directory)
    metadata = json.loads((directory / "metadata.json").read_text())
    assert metadata["verification_tier"] == "Forensic"
    assert metadata["protected_layers"] == 2
    assert metadata["layer_results"]["MainView_SSAO"]["error"] == "embed failed"
    text = (directory / "verification_report.txt").read_text()
    assert "Verification Tier: Forensic (95% confidence)" in text
    assert "Success Rate: 66.7%" in text
    assert (directory / "primary.png").read_bytes() == primary.image_bytes


def test_report_store_overwrites_in_place(tmp_path: Path) -> None:
    session = make_session()
    store = FilesystemReportStore(tmp_path)

    store.save_report(session, _report(session.id, 1), None)
    store.save_report(session, _report(session.id, 2), None)

    directory = tmp_path / session.id / "protection"
    metadata = json.loads((directory / "metadata.json").read_text())
    assert metadata["version_number"] == 2
    assert not (directory / "primary.png").exists()


def test_backup_writer_writes_payloads_and_manifest(tmp_path: Path) -> None:
    writer = LocalBackupWriter(tmp_path)
    jobs = [
        make_job(Direction.MAIN_VIEW, MapType.DEPTH, b"depth"),
        make_job(Direction.TOP_VIEW, MapType.SSAO, b""),
    ]

    record = writer.write("VR_1", jobs, "retries_exhausted")

    directory = tmp_path / "VR_1" / "local_backup"
    assert record.location == directory
    assert record.files_written == 2
    assert (directory / "MainView_Depth.png").read_bytes() == b"depth"
    assert (directory / "TopView_SSAO.png").read_bytes() == b""
    manifest = json.loads((directory / "manifest.json").read_text())
    assert manifest["reason"] == "retries_exhausted"
    assert [entry["layer_id"] for entry in manifest["layers"]] == [
        "MainView_Depth",
        "TopView_SSAO",
    ]


def test_directory_image_source_reads_render(tmp_path: Path) -> None:
    image = make_png()
    (tmp_path / "DetailView_Normal.png").write_bytes(image)
    source = DirectoryImageSource(tmp_path)
    buffer = CaptureBuffer(resolution=64)

    data = asyncio.run(source.capture(Direction.DETAIL_VIEW, MapType.NORMAL, buffer))

    assert data == image
    assert bytes(buffer.data) == image


def test_directory_image_source_missing_file(tmp_path: Path) -> None:
    source = DirectoryImageSource(tmp_path)

    with pytest.raises(FileNotFoundError):
        asyncio.run(
            source.capture(Direction.MAIN_VIEW, MapType.DEPTH, CaptureBuffer(64))
        )
