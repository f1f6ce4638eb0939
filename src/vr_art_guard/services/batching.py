"""Packaging of capture jobs into a single protection request."""

import base64
import logging
import math
from dataclasses import dataclass

from vr_art_guard.domain.protection import CaptureJob, LayerPayload, ProtectionRequest
from vr_art_guard.services.errors import SerializationError

logger = logging.getLogger(__name__)


@dataclass
class BatchAssembler:
    """Groups every job of a cycle into one request."""

    creator_id: str = "Unknown"

    def assemble(
        self, session_id: str, jobs: list[CaptureJob], version_number: int = 1
    ) -> ProtectionRequest:
        """Serialize ``jobs`` into a request, failing on malformed data."""
        if not session_id:
            raise SerializationError("Session id is required")

        payloads: list[LayerPayload] = []
        seen: set[str] = set()
        for job in jobs:
            layer_id = job.layer_id
            if layer_id in seen:
                raise SerializationError(f"Duplicate layer {layer_id} in one cycle")
            seen.add(layer_id)
            payloads.append(_serialize(job))

        request = ProtectionRequest(
            session_id=session_id,
            layer_count=len(payloads),
            layers=tuple(payloads),
            jobs=tuple(jobs),
            version_number=version_number,
            creator_id=self.creator_id,
        )
        logger.info("Prepared request with %s layers", request.layer_count)
        return request


def _serialize(job: CaptureJob) -> LayerPayload:
    if not isinstance(job.image_bytes, bytes | bytearray):
        raise SerializationError(f"Layer {job.layer_id} has no byte payload")
    if not isinstance(job.strength, int | float) or not math.isfinite(job.strength):
        raise SerializationError(f"Layer {job.layer_id} has invalid strength")
    if not job.message:
        raise SerializationError(f"Layer {job.layer_id} has no message")
    return LayerPayload(
        layer_id=job.layer_id,
        image_base64=base64.b64encode(job.image_bytes).decode("utf-8"),
        strength=float(job.strength),
        message=job.message,
    )
