"""Artwork complexity estimation from creation activity."""

import math
from dataclasses import dataclass
from typing import Protocol

from vr_art_guard.domain.sessions import CreationSession, Position

_STROKE_REFERENCE = 100
_TOOL_REFERENCE = 5
_DURATION_REFERENCE_SECONDS = 1800.0
_DEFAULT_SPREAD_REFERENCE = 5.0


@dataclass(frozen=True)
class ArtworkBounds:
    """Axis-aligned bounds of the artwork in world units."""

    center: Position
    size: Position

    @property
    def max_dimension(self) -> float:
        return max(self.size)


class ArtworkBoundsProvider(Protocol):
    """Narrow interface for reading the artwork's current bounds."""

    def artwork_bounds(self) -> ArtworkBounds | None:
        """Return the bounds, or None when no artwork is present."""


@dataclass
class ActivityComplexityEstimator:
    """Weighted blend of strokes, hotspot spread, tool variety and time."""

    bounds_provider: ArtworkBoundsProvider | None = None

    def estimate(self, session: CreationSession) -> float:
        """Return a complexity scalar in ``[0, 1]``."""
        complexity = _clamp01(session.brush_strokes / _STROKE_REFERENCE) * 0.3
        if len(session.hotspots) > 1:
            spread = _hotspot_spread(session.hotspots, session.primary_area)
            complexity += _clamp01(spread / self._spread_reference()) * 0.3
        complexity += _clamp01(len(session.tools_used) / _TOOL_REFERENCE) * 0.2
        complexity += (
            _clamp01(session.duration_seconds / _DURATION_REFERENCE_SECONDS) * 0.2
        )
        return complexity

    def _spread_reference(self) -> float:
        """Typical viewing distance around the artwork."""
        if self.bounds_provider is None:
            return _DEFAULT_SPREAD_REFERENCE
        bounds = self.bounds_provider.artwork_bounds()
        if bounds is None:
            return _DEFAULT_SPREAD_REFERENCE
        return min(8.0, max(2.0, bounds.max_dimension * 2.5))


def _hotspot_spread(hotspots: list[Position], center: Position) -> float:
    return max(math.dist(point, center) for point in hotspots)


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))
