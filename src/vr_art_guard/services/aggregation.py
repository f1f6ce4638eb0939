"""Normalization of heterogeneous service replies into one report."""

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from vr_art_guard.domain.layers import MapType
from vr_art_guard.domain.protection import (
    DEFAULT_TIER_THRESHOLDS,
    CaptureJob,
    LayerResult,
    ProtectionReport,
    TierThresholds,
)
from vr_art_guard.domain.wire import BatchWatermarkResponse, WatermarkResponse
from vr_art_guard.services.delivery import BatchReply, LayerReply, ServiceReply

logger = logging.getLogger(__name__)

_DEFAULT_ROBUSTNESS = MapType.IMAGE.robustness


@dataclass
class ResultAggregator:
    """Merges batch and individual replies into a per-layer result map."""

    thresholds: TierThresholds = DEFAULT_TIER_THRESHOLDS

    def merge(
        self, jobs: list[CaptureJob], replies: list[ServiceReply]
    ) -> dict[str, LayerResult]:
        """Return ``layer_id -> LayerResult`` for every parseable reply.

        Replies naming layers outside ``jobs`` are dropped. A later protected
        result for a layer replaces an earlier one; an unprotected result never
        overwrites a protected one.
        """
        robustness = {job.layer_id: job.map_type.robustness for job in jobs}
        results: dict[str, LayerResult] = {}
        for reply in replies:
            for result in self._normalize(reply, robustness):
                if result.layer_id not in robustness:
                    logger.error("Dropping result for unknown layer %s", result.layer_id)
                    continue
                existing = results.get(result.layer_id)
                if existing is not None and existing.protected and not result.protected:
                    continue
                results[result.layer_id] = result
        return results

    def aggregate(  # noqa: PLR0913
        self,
        *,
        session_id: str,
        jobs: list[CaptureJob],
        replies: list[ServiceReply],
        processing_duration_seconds: float,
        version_number: int = 1,
        trigger: str = "manual",
        primary_layer_id: str | None = None,
    ) -> ProtectionReport:
        """Build the protection report for one cycle."""
        return ProtectionReport(
            session_id=session_id,
            total_layers=len(jobs),
            results=self.merge(jobs, replies),
            processing_duration_seconds=processing_duration_seconds,
            version_number=version_number,
            trigger=trigger,
            primary_layer_id=primary_layer_id,
            thresholds=self.thresholds,
        )

    def _normalize(
        self, reply: ServiceReply, robustness: dict[str, float]
    ) -> list[LayerResult]:
        if isinstance(reply, BatchReply):
            try:
                response = BatchWatermarkResponse.model_validate(reply.body)
            except ValidationError as exc:
                logger.error("Dropping malformed batch response: %s", exc)
                return []
            return [
                LayerResult(
                    layer_id=item.layer_id,
                    protected=item.success,
                    bit_accuracy=item.bit_accuracy,
                    watermark_hash=item.watermark_hash,
                    error=item.error,
                    robustness=robustness.get(item.layer_id, _DEFAULT_ROBUSTNESS),
                )
                for item in response.results
            ]

        if isinstance(reply, LayerReply):
            try:
                response = WatermarkResponse.model_validate(reply.body)
            except ValidationError as exc:
                logger.error("Dropping malformed response for %s: %s", reply.layer_id, exc)
                return []
            return [
                LayerResult(
                    layer_id=reply.layer_id,
                    protected=response.success,
                    bit_accuracy=response.bit_accuracy or 0.0,
                    watermark_hash=response.hash or "",
                    robustness=robustness.get(reply.layer_id, _DEFAULT_ROBUSTNESS),
                )
            ]

        logger.error("Dropping unknown reply type %s", type(reply).__name__)
        return []
