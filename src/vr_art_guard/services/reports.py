"""Persistence interfaces for protection reports and local fallback."""

import platform
import socket
import sys
from datetime import UTC, datetime
from typing import Protocol

from vr_art_guard.domain.protection import (
    CaptureJob,
    FallbackRecord,
    ProtectionReport,
)
from vr_art_guard.domain.sessions import CreationSession


class ReportStore(Protocol):
    """Persistence collaborator for finished protection reports."""

    def save_report(
        self,
        session: CreationSession,
        report: ProtectionReport,
        primary: CaptureJob | None,
    ) -> str:
        """Persist a report idempotently and return its location."""


class BackupWriter(Protocol):
    """Local fallback sink for captured payloads."""

    def write(
        self, session_id: str, jobs: list[CaptureJob], reason: str
    ) -> FallbackRecord:
        """Write every job payload and return where they went."""


def environment_info() -> dict[str, str]:
    """Describe the host the report was produced on."""
    return {
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
        "machine": platform.machine(),
        "host": socket.gethostname(),
    }


def build_metadata(
    session: CreationSession, report: ProtectionReport
) -> dict[str, object]:
    """Build the machine-readable metadata document for a report."""
    tier = report.verification_tier
    return {
        "session_id": report.session_id,
        "version_number": report.version_number,
        "trigger": report.trigger,
        "timestamp": report.created_at.isoformat(),
        "artist_id": session.artist_id,
        "project_name": session.project_name,
        "complexity": session.complexity,
        "total_layers": report.total_layers,
        "protected_layers": report.protected_count,
        "verification_tier": tier.value,
        "confidence": tier.confidence,
        "primary_layer_id": report.primary_layer_id,
        "processing_duration_seconds": report.processing_duration_seconds,
        "layer_results": {
            layer_id: result.to_dict() for layer_id, result in report.results.items()
        },
        "environment": environment_info(),
    }


def render_text_report(report: ProtectionReport) -> str:
    """Render the human-readable verification report."""
    tier = report.verification_tier
    generated = datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S")
    lines = [
        "=== VR Artwork Protection Report ===",
        f"Session ID: {report.session_id}",
        f"Version: v{report.version_number:03d}",
        f"Generated: {generated}",
        "",
        "Protection Summary:",
        f"- Total Layers: {report.total_layers}",
        f"- Protected Layers: {report.protected_count}",
        f"- Success Rate: {report.success_rate:.1%}",
        f"- Verification Tier: {tier.value} ({tier.confidence}% confidence)",
        f"- Processing Time: {report.processing_duration_seconds:.2f}s",
        "",
        "Layer Details:",
    ]
    for layer_id in sorted(report.results):
        result = report.results[layer_id]
        lines.append(f"  [{layer_id}]")
        lines.append(f"    - Protected: {result.protected}")
        lines.append(f"    - Robustness: {result.robustness:.0%}")
        lines.append(f"    - Bit Accuracy: {result.bit_accuracy:.1%}")
        if result.error:
            lines.append(f"    - Error: {result.error}")
    return "\n".join(lines) + "\n"
