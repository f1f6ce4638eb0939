"""Filesystem persistence for protection reports and local backups."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from vr_art_guard.domain.protection import CaptureJob, FallbackRecord, ProtectionReport
from vr_art_guard.domain.sessions import CreationSession
from vr_art_guard.services.reports import (
    BackupWriter,
    ReportStore,
    build_metadata,
    render_text_report,
)

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
TEXT_REPORT_FILE = "verification_report.txt"
PRIMARY_FILE = "primary.png"
MANIFEST_FILE = "manifest.json"


@dataclass
class FilesystemReportStore(ReportStore):
    """Writes one report directory per session, overwriting in place."""

    root: Path

    def report_dir(self, session_id: str) -> Path:
        return self.root / session_id / "protection"

    def save_report(
        self,
        session: CreationSession,
        report: ProtectionReport,
        primary: CaptureJob | None,
    ) -> str:
        """Write metadata, the text report and the primary preview."""
        directory = self.report_dir(report.session_id)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / METADATA_FILE).write_text(
            json.dumps(build_metadata(session, report), indent=2, default=str),
            encoding="utf-8",
        )
        (directory / TEXT_REPORT_FILE).write_text(
            render_text_report(report), encoding="utf-8"
        )
        if primary is not None and primary.image_bytes:
            (directory / PRIMARY_FILE).write_bytes(primary.image_bytes)
        logger.info("Report saved to %s", directory)
        return str(directory)


@dataclass
class LocalBackupWriter(BackupWriter):
    """Writes every captured payload of a failed cycle to local disk."""

    root: Path

    def backup_dir(self, session_id: str) -> Path:
        return self.root / session_id / "local_backup"

    def write(
        self, session_id: str, jobs: list[CaptureJob], reason: str
    ) -> FallbackRecord:
        """Write one file per job plus a manifest describing them."""
        directory = self.backup_dir(session_id)
        directory.mkdir(parents=True, exist_ok=True)
        entries = []
        for job in jobs:
            filename = f"{job.layer_id}.png"
            (directory / filename).write_bytes(job.image_bytes)
            entries.append(
                {
                    "layer_id": job.layer_id,
                    "file": filename,
                    "bytes": len(job.image_bytes),
                    "strength": job.strength,
                    "message": job.message,
                    "captured_at": job.captured_at.isoformat(),
                }
            )
        manifest = {
            "session_id": session_id,
            "reason": reason,
            "written_at": datetime.now(tz=UTC).isoformat(),
            "layers": entries,
        }
        (directory / MANIFEST_FILE).write_text(
            json.dumps(manifest, indent=2), encoding="utf-8"
        )
        return FallbackRecord(
            session_id=session_id,
            location=directory,
            files_written=len(entries),
            reason=reason,
        )
