"""Tests for activity-based complexity estimation."""

import pytest

from tests.conftest import make_session
from vr_art_guard.services.complexity import ActivityComplexityEstimator, ArtworkBounds


class StaticBounds:
    def __init__(self, bounds: ArtworkBounds | None) -> None:
        self.bounds = bounds

    def artwork_bounds(self) -> ArtworkBounds | None:
        return self.bounds


def test_fresh_session_has_zero_complexity() -> None:
    assert ActivityComplexityEstimator().estimate(make_session()) == 0.0


def test_components_are_weighted_and_capped() -> None:
    session = make_session()
    session.brush_strokes = 50
    session.tools_used = {"Brush", "Eraser"}
    session.duration_seconds = 900

    assert ActivityComplexityEstimator().estimate(session) == pytest.approx(
        0.15 + 0.08 + 0.1
    )

    session.brush_strokes = 10_000
    session.tools_used = {f"tool-{n}" for n in range(20)}
    session.duration_seconds = 10_000
    assert ActivityComplexityEstimator().estimate(session) == pytest.approx(0.7)


def test_hotspot_spread_uses_artwork_bounds() -> None:
    session = make_session()
    session.add_hotspot((0.0, 0.0, 0.0))
    session.add_hotspot((2.0, 0.0, 0.0))

    default = ActivityComplexityEstimator().estimate(session)
    small_artwork = ActivityComplexityEstimator(
        StaticBounds(ArtworkBounds(center=(0, 0, 0), size=(0.4, 0.4, 0.4)))
    ).estimate(session)
    no_artwork = ActivityComplexityEstimator(StaticBounds(None)).estimate(session)

    assert default == pytest.approx(0.3 * (1.0 / 5.0))
    assert small_artwork == pytest.approx(0.3 * (1.0 / 2.0))
    assert no_artwork == default


def test_hotspots_track_centroid_and_cap() -> None:
    session = make_session()
    for index in range(150):
        session.add_hotspot((float(index), 0.0, 0.0))

    assert len(session.hotspots) == 100
    assert session.primary_area == pytest.approx((99.5, 0.0, 0.0))
