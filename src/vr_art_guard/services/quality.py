"""Quality scoring used to choose a human-facing preview image."""

import io
import logging
from dataclasses import dataclass, field

import numpy as np
from PIL import Image, UnidentifiedImageError

from vr_art_guard.domain.layers import Direction
from vr_art_guard.domain.protection import CaptureJob

logger = logging.getLogger(__name__)

DIRECTION_WEIGHTS: dict[Direction, float] = {
    Direction.MAIN_VIEW: 1.2,
    Direction.DETAIL_VIEW: 1.1,
    Direction.PROFILE_LEFT: 1.0,
    Direction.PROFILE_RIGHT: 1.0,
    Direction.TOP_VIEW: 0.8,
    Direction.BOTTOM_VIEW: 0.7,
}

_CONTENT_WEIGHT = 0.4
_SATURATION_WEIGHT = 0.3
_CONTRAST_WEIGHT = 0.3
_MIN_ALPHA = 0.2
# Dark grey exhibition background.
_BACKGROUND_MAX = (0.2, 0.2, 0.25)


@dataclass
class QualityScorer:
    """Scores rendered views by content coverage, saturation and contrast."""

    weights: dict[Direction, float] = field(
        default_factory=lambda: dict(DIRECTION_WEIGHTS)
    )

    def score(self, image: bytes, direction: Direction) -> float:
        """Return a quality score in ``[0, 1]`` for an encoded image."""
        pixels = _decode_rgba(image)
        if pixels is None or pixels.size == 0:
            return 0.0

        rgb = pixels[..., :3]
        alpha = pixels[..., 3]
        background = (
            (rgb[..., 0] < _BACKGROUND_MAX[0])
            & (rgb[..., 1] < _BACKGROUND_MAX[1])
            & (rgb[..., 2] < _BACKGROUND_MAX[2])
        )
        content = (alpha > _MIN_ALPHA) & ~background
        total_pixels = content.size
        content_pixels = int(content.sum())

        score = _CONTENT_WEIGHT * (content_pixels / total_pixels)
        if content_pixels:
            selected = rgb[content]
            saturation = selected.max(axis=1) - selected.min(axis=1)
            luma = selected @ np.array([0.299, 0.587, 0.114], dtype=np.float64)
            contrast = np.abs(luma - 0.5)
            score += _SATURATION_WEIGHT * float(saturation.mean())
            score += _CONTRAST_WEIGHT * float(contrast.mean())

        score *= self.weights.get(direction, 1.0)
        return float(min(1.0, max(0.0, score)))

    def select_primary(self, jobs: list[CaptureJob]) -> tuple[CaptureJob, float]:
        """Return the best-scoring job and its score.

        Plain-image layers are preferred candidates when the matrix has them.
        Ties keep the first job in capture order.
        """
        if not jobs:
            raise ValueError("Cannot select a primary view from no jobs")
        candidates = [job for job in jobs if job.is_plain_image] or jobs

        best = candidates[0]
        best_score = -1.0
        for job in candidates:
            job_score = self.score(job.image_bytes, job.direction)
            if job_score > best_score:
                best, best_score = job, job_score
        return best, best_score


def _decode_rgba(image: bytes) -> np.ndarray | None:
    """Decode an encoded image into float RGBA values in ``[0, 1]``."""
    if not image:
        return None
    try:
        with Image.open(io.BytesIO(image)) as decoded:
            rgba = decoded.convert("RGBA")
            return np.asarray(rgba, dtype=np.float64) / 255.0
    except (UnidentifiedImageError, OSError, ValueError):
        logger.warning("Could not decode image for quality scoring", exc_info=True)
        return None
