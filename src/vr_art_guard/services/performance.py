"""Processing-time history across protection cycles."""

import logging
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class PerformanceTracker:
    """Keeps the latest cycle durations and checks them against a budget."""

    max_samples: int = 10
    target_seconds: float = 27.0
    min_protected_layers: int = 2
    last_protected_count: int = 0
    _durations: deque[float] = field(init=False, repr=False, default_factory=deque)

    def __post_init__(self) -> None:
        if self.max_samples <= 0:
            raise ValueError("max_samples must be positive")
        self._durations = deque(maxlen=self.max_samples)

    @property
    def durations(self) -> list[float]:
        return list(self._durations)

    @property
    def average(self) -> float | None:
        if not self._durations:
            return None
        return sum(self._durations) / len(self._durations)

    @property
    def minimum(self) -> float | None:
        return min(self._durations, default=None)

    @property
    def maximum(self) -> float | None:
        return max(self._durations, default=None)

    def record(self, duration_seconds: float, protected_count: int) -> None:
        """Add one cycle and log the running statistics."""
        self._durations.append(duration_seconds)
        self.last_protected_count = protected_count
        logger.info(
            "Cycle took %.2fs (avg %.2fs, min %.2fs, max %.2fs, %.1f%% of target)",
            duration_seconds,
            self.average,
            self.minimum,
            self.maximum,
            duration_seconds / self.target_seconds * 100,
        )
        if duration_seconds > self.target_seconds:
            logger.warning(
                "Cycle exceeded the %.0fs target: %.1fs",
                self.target_seconds,
                duration_seconds,
            )

    def meets_requirements(self) -> bool:
        """True when the average is within target and enough layers held."""
        average = self.average
        if average is None:
            return False
        return (
            average <= self.target_seconds
            and self.last_protected_count >= self.min_protected_layers
        )

    def snapshot(self) -> dict[str, object]:
        average = self.average
        return {
            "samples": len(self._durations),
            "average_seconds": round(average, 3) if average is not None else None,
            "min_seconds": self.minimum,
            "max_seconds": self.maximum,
            "target_seconds": self.target_seconds,
            "meets_requirements": self.meets_requirements(),
        }
