"""Capture of the fixed layer matrix from an external image source."""

import asyncio
import logging
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from vr_art_guard.domain.layers import Direction, LayerMatrix, MapType, layer_message
from vr_art_guard.domain.protection import CaptureJob
from vr_art_guard.domain.sessions import CreationSession

logger = logging.getLogger(__name__)

DEFAULT_MAP_STRENGTHS: dict[MapType, float] = {
    MapType.DEPTH: 2.0,
    MapType.NORMAL: 1.8,
    MapType.SSAO: 1.5,
    MapType.ALBEDO: 1.3,
    MapType.SPECULAR: 1.2,
    MapType.IMAGE: 1.0,
}


@dataclass
class CaptureBuffer:
    """Reusable scratch buffer a renderer draws one view into."""

    resolution: int
    data: bytearray = field(default_factory=bytearray)

    def reset(self) -> None:
        self.data.clear()


class ImageSource(Protocol):
    """Interface for the renderer that produces layer images."""

    async def capture(
        self, direction: Direction, map_type: MapType, buffer: CaptureBuffer
    ) -> bytes:
        """Render one view into ``buffer`` and return the encoded image."""


class CaptureBufferPool:
    """Bounded pool of capture buffers shared across cycles.

    Leasing never fails: an empty pool allocates a fresh buffer, and at most
    ``size`` idle buffers are kept when they come back.
    """

    def __init__(self, size: int = 8, resolution: int = 1024) -> None:
        if size <= 0:
            raise ValueError("Pool size must be positive")
        self.size = size
        self.resolution = resolution
        self._idle: deque[CaptureBuffer] = deque(
            CaptureBuffer(resolution) for _ in range(size)
        )
        self._leased = 0
        self.allocated = size

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def leased_count(self) -> int:
        return self._leased

    def acquire(self) -> CaptureBuffer:
        """Take a buffer, allocating a new one if the pool is empty."""
        if self._idle:
            buffer = self._idle.popleft()
        else:
            buffer = CaptureBuffer(self.resolution)
            self.allocated += 1
            logger.debug("Capture pool empty, allocated buffer #%s", self.allocated)
        self._leased += 1
        return buffer

    def release(self, buffer: CaptureBuffer) -> None:
        """Return a buffer to the pool."""
        self._leased = max(0, self._leased - 1)
        buffer.reset()
        if len(self._idle) < self.size:
            self._idle.append(buffer)

    @contextmanager
    def lease(self) -> Iterator[CaptureBuffer]:
        """Lease a buffer for the duration of a ``with`` block."""
        buffer = self.acquire()
        try:
            yield buffer
        finally:
            self.release(buffer)


@dataclass
class CaptureOrchestrator:
    """Produces one capture job per layer of the configured matrix."""

    image_source: ImageSource
    matrix: LayerMatrix
    pool: CaptureBufferPool
    strengths: dict[MapType, float] = field(
        default_factory=lambda: dict(DEFAULT_MAP_STRENGTHS)
    )
    yield_every: int = 6

    async def produce_jobs(self, session: CreationSession) -> list[CaptureJob]:
        """Capture every layer, direction-major, for one protection cycle."""
        jobs: list[CaptureJob] = []
        for direction, map_type in self.matrix.cells():
            image_bytes = await self._capture_one(direction, map_type)
            jobs.append(
                CaptureJob(
                    direction=direction,
                    map_type=map_type,
                    image_bytes=image_bytes,
                    strength=self.strengths.get(map_type, 1.0),
                    message=layer_message(direction, map_type, session.id),
                )
            )
            if self.yield_every > 0 and len(jobs) % self.yield_every == 0:
                await asyncio.sleep(0)

        logger.info(
            "Captured %s layers for session %s (%s empty)",
            len(jobs),
            session.id,
            sum(1 for job in jobs if not job.image_bytes),
        )
        return jobs

    async def _capture_one(self, direction: Direction, map_type: MapType) -> bytes:
        with self.pool.lease() as buffer:
            try:
                return bytes(await self.image_source.capture(direction, map_type, buffer))
            except Exception:
                logger.warning(
                    "Capture failed for %s_%s, using placeholder",
                    direction.value,
                    map_type.value,
                    exc_info=True,
                )
                return b""
