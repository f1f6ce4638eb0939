"""Supabase-backed protection report repository."""

from dataclasses import dataclass

from supabase import Client

from vr_art_guard.domain.protection import CaptureJob, ProtectionReport
from vr_art_guard.domain.sessions import CreationSession
from vr_art_guard.services.reports import ReportStore, build_metadata


@dataclass
class SupabaseReportRepository(ReportStore):
    """Stores one row per session version in ``protection_reports``."""

    client: Client

    def save_report(
        self,
        session: CreationSession,
        report: ProtectionReport,
        primary: CaptureJob | None,
    ) -> str:
        """Upsert the report row keyed by session id and version."""
        tier = report.verification_tier
        response = (
            self.client.table("protection_reports")
            .upsert(
                {
                    "session_id": report.session_id,
                    "version_number": report.version_number,
                    "trigger": report.trigger,
                    "total_layers": report.total_layers,
                    "protected_layers": report.protected_count,
                    "verification_tier": tier.value,
                    "confidence": tier.confidence,
                    "primary_layer_id": primary.layer_id if primary else None,
                    "processing_seconds": report.processing_duration_seconds,
                    "metadata_json": build_metadata(session, report),
                },
                on_conflict="session_id,version_number",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to store protection report")
        row = response.data[0]
        return f"protection_reports/{row.get('id', report.session_id)}"
