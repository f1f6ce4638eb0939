"""Delivery of protection requests with capability negotiation and retries."""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from fractions import Fraction
from typing import Protocol

from pydantic import ValidationError

from vr_art_guard.domain.protection import (
    CaptureJob,
    FallbackRecord,
    LayerResult,
    ProtectionReport,
    ProtectionRequest,
)
from vr_art_guard.domain.wire import (
    BatchWatermarkResponse,
    HealthResponse,
    VerifyResponse,
)
from vr_art_guard.services.errors import ResponseParseError, TransportError
from vr_art_guard.services.reports import BackupWriter

logger = logging.getLogger(__name__)

VERIFY_LAYER_ID = "verify"


class ProtectionServiceClient(Protocol):
    """Interface for the remote watermark-embedding service."""

    async def health(self) -> object:
        """Return the decoded ``GET /health`` body."""

    async def watermark_batch(self, body: dict[str, object]) -> object:
        """Send every layer in one call and return the decoded body."""

    async def watermark(self, body: dict[str, object]) -> object:
        """Send one layer and return the decoded body."""

    async def verify(self, body: dict[str, object]) -> object:
        """Ask the service to detect a watermark in one image."""


@dataclass(frozen=True)
class BatchReply:
    """Combined response of a batch call."""

    body: object


@dataclass(frozen=True)
class LayerReply:
    """Response of one individual call."""

    layer_id: str
    body: object


ServiceReply = BatchReply | LayerReply


@dataclass(frozen=True)
class Delivered:
    """Delivery met its success criterion."""

    replies: list[ServiceReply]
    attempts: int
    batch_mode: bool


@dataclass(frozen=True)
class FallbackWritten:
    """Delivery was exhausted and payloads went to local backup."""

    replies: list[ServiceReply]
    attempts: int
    batch_mode: bool
    record: FallbackRecord | None
    reason: str


DeliveryOutcome = Delivered | FallbackWritten


@dataclass
class RetryPolicy:
    """Bounded whole-request retry with a fixed (or growing) delay."""

    max_attempts: int = 3
    delay_seconds: float = 1.0
    backoff_factor: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_before(self, attempt: int) -> float:
        """Delay to wait before ``attempt`` (1-based)."""
        if attempt <= 1:
            return 0.0
        return self.delay_seconds * self.backoff_factor ** (attempt - 2)


@dataclass
class DeliveryClient:
    """Sends protection requests to the service and falls back locally."""

    service: ProtectionServiceClient
    backup_writer: BackupWriter
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    success_ratio: float = 0.8
    yield_every: int = 3
    batch_supported: bool = False
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def negotiate(self) -> bool:
        """Ask the service about batch support; failures mean individual mode."""
        try:
            body = await self.service.health()
            health = HealthResponse.model_validate(body)
        except (TransportError, ResponseParseError, ValidationError) as exc:
            logger.warning("Health check failed, using individual requests: %s", exc)
            self.batch_supported = False
            return False
        except Exception:
            logger.exception("Health check crashed, using individual requests")
            self.batch_supported = False
            return False
        self.batch_supported = bool(health.batch_support)
        logger.info("Protection service batch support: %s", self.batch_supported)
        return self.batch_supported

    async def deliver(self, request: ProtectionRequest) -> DeliveryOutcome:
        """Deliver ``request`` within the retry bound, else write a fallback."""
        batch_mode = self.batch_supported
        replies: list[ServiceReply] = []
        attempts = 0
        for attempt in range(1, self.retry_policy.max_attempts + 1):
            delay = self.retry_policy.delay_before(attempt)
            if delay > 0:
                logger.warning(
                    "Retrying delivery (%s/%s) in %.1fs",
                    attempt,
                    self.retry_policy.max_attempts,
                    delay,
                )
                await self.sleep(delay)
            attempts = attempt
            if batch_mode:
                succeeded = await self._send_batch(request, replies)
            else:
                succeeded = await self._send_individually(request, replies)
            if succeeded:
                return Delivered(replies=replies, attempts=attempts, batch_mode=batch_mode)

        logger.error(
            "Delivery failed after %s attempts, writing local backup", attempts
        )
        record = self.write_fallback(
            request.session_id, list(request.jobs), reason="retries_exhausted"
        )
        return FallbackWritten(
            replies=replies,
            attempts=attempts,
            batch_mode=batch_mode,
            record=record,
            reason="retries_exhausted",
        )

    def write_fallback(
        self, session_id: str, jobs: list[CaptureJob], reason: str
    ) -> FallbackRecord | None:
        """Persist captured payloads locally; terminal and never retried."""
        try:
            record = self.backup_writer.write(session_id, jobs, reason)
        except OSError:
            logger.exception("Local backup failed for session %s", session_id)
            return None
        logger.warning(
            "Local backup written: %s files at %s",
            record.files_written,
            record.location,
        )
        return record

    async def verify(self, image_bytes: bytes, session_id: str = "") -> ProtectionReport:
        """Check one image for a watermark and report it as a single layer.

        The tier of this one-layer report only says whether a mark was found.
        """
        started = asyncio.get_running_loop().time()
        body = await self.service.verify(
            {
                "image": base64.b64encode(image_bytes).decode("utf-8"),
                "sessionId": session_id,
            }
        )
        try:
            verdict = VerifyResponse.model_validate(body)
        except ValidationError as exc:
            raise ResponseParseError(f"Malformed verify response: {exc}") from exc
        result = LayerResult(
            layer_id=VERIFY_LAYER_ID,
            protected=verdict.detected,
            bit_accuracy=verdict.confidence,
            watermark_hash="",
            error=None if verdict.detected else verdict.message or None,
        )
        return ProtectionReport(
            session_id=session_id,
            total_layers=1,
            results={VERIFY_LAYER_ID: result},
            processing_duration_seconds=asyncio.get_running_loop().time() - started,
            trigger="verify",
        )

    async def _send_batch(
        self, request: ProtectionRequest, replies: list[ServiceReply]
    ) -> bool:
        try:
            body = await self.service.watermark_batch(request.to_batch_body())
        except (TransportError, ResponseParseError) as exc:
            logger.error("Batch request failed: %s", exc)
            return False
        except Exception:
            logger.exception("Batch request crashed")
            return False
        replies.append(BatchReply(body=body))
        try:
            response = BatchWatermarkResponse.model_validate(body)
        except ValidationError as exc:
            logger.error("Batch response malformed: %s", exc)
            return False
        if not response.success:
            logger.error("Service rejected batch for session %s", request.session_id)
            return False
        logger.info("Batch processed: %s layer results", len(response.results))
        return True

    async def _send_individually(
        self, request: ProtectionRequest, replies: list[ServiceReply]
    ) -> bool:
        success_count = 0
        timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S")
        for index, layer in enumerate(request.layers, start=1):
            body = {
                "image": layer.image_base64,
                "creatorId": request.creator_id,
                "timestamp": timestamp,
                "artworkId": request.session_id,
                "sessionId": request.session_id,
                "versionNumber": request.version_number,
                "viewDirection": layer.layer_id.split("_", 1)[0],
                "complexity": layer.strength,
                "message": layer.message,
                "layerId": layer.layer_id,
            }
            try:
                reply = await self.service.watermark(body)
            except TransportError as exc:
                logger.error("Layer %s failed: %s", layer.layer_id, exc)
            except ResponseParseError as exc:
                success_count += 1
                logger.error("Layer %s returned an unreadable body: %s", layer.layer_id, exc)
            except Exception:
                logger.exception("Layer %s request crashed", layer.layer_id)
            else:
                success_count += 1
                replies.append(LayerReply(layer_id=layer.layer_id, body=reply))
            if self.yield_every > 0 and index % self.yield_every == 0:
                await asyncio.sleep(0)

        logger.info(
            "Individual requests done: %s/%s succeeded",
            success_count,
            request.layer_count,
        )
        return meets_success_ratio(success_count, request.layer_count, self.success_ratio)


def meets_success_ratio(success_count: int, total: int, ratio: float) -> bool:
    """Exact rational check of ``success_count / total >= ratio``."""
    if total <= 0:
        return False
    return Fraction(success_count, total) >= Fraction(str(ratio))
