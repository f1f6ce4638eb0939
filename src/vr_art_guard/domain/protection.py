"""Domain models for capture jobs, protection requests and reports."""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from fractions import Fraction
from pathlib import Path

from vr_art_guard.domain.layers import Direction, MapType, layer_id


class VerificationTier(str, Enum):
    """Discrete trust levels, weakest first."""

    NONE = "None"
    BASIC = "Basic"
    STANDARD = "Standard"
    FORENSIC = "Forensic"
    PERFECT = "Perfect"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    @property
    def confidence(self) -> int:
        """Display confidence percentage for the tier."""
        return _TIER_CONFIDENCE[self]


_TIER_ORDER = [
    VerificationTier.NONE,
    VerificationTier.BASIC,
    VerificationTier.STANDARD,
    VerificationTier.FORENSIC,
    VerificationTier.PERFECT,
]

_TIER_CONFIDENCE = {
    VerificationTier.NONE: 0,
    VerificationTier.BASIC: 60,
    VerificationTier.STANDARD: 80,
    VerificationTier.FORENSIC: 95,
    VerificationTier.PERFECT: 100,
}


@dataclass(frozen=True)
class TierThresholds:
    """Tuned tier cut-offs, as fractions of the cycle's total layers."""

    perfect: Fraction = Fraction(1)
    forensic: Fraction = Fraction(2, 3)
    standard: Fraction = Fraction(1, 3)
    basic_min_layers: int = 2

    def minimum_count(self, tier: VerificationTier, total_layers: int) -> int:
        """Return the protected-layer count needed to reach ``tier``."""
        if tier is VerificationTier.NONE:
            return 0
        if tier is VerificationTier.BASIC:
            return self.basic_min_layers
        fraction = {
            VerificationTier.STANDARD: self.standard,
            VerificationTier.FORENSIC: self.forensic,
            VerificationTier.PERFECT: self.perfect,
        }[tier]
        return math.ceil(fraction * total_layers)

    def tier_for(self, protected_count: int, total_layers: int) -> VerificationTier:
        """Map a protected-layer count to its tier."""
        if total_layers <= 0:
            return VerificationTier.NONE
        for tier in reversed(_TIER_ORDER[1:]):
            if protected_count >= self.minimum_count(tier, total_layers):
                return tier
        return VerificationTier.NONE


DEFAULT_TIER_THRESHOLDS = TierThresholds()


@dataclass(frozen=True)
class CaptureJob:
    """One captured layer waiting to be protected."""

    direction: Direction
    map_type: MapType
    image_bytes: bytes
    strength: float
    message: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def layer_id(self) -> str:
        return layer_id(self.direction, self.map_type)

    @property
    def is_plain_image(self) -> bool:
        return self.map_type is MapType.IMAGE


@dataclass(frozen=True)
class LayerPayload:
    """Serialized form of a capture job."""

    layer_id: str
    image_base64: str
    strength: float
    message: str


@dataclass(frozen=True)
class ProtectionRequest:
    """All layers of one protection cycle, ready for the wire."""

    session_id: str
    layer_count: int
    layers: tuple[LayerPayload, ...]
    jobs: tuple[CaptureJob, ...] = ()
    version_number: int = 1
    creator_id: str = "Unknown"

    def to_batch_body(self) -> dict[str, object]:
        """Return the ``/watermark_batch`` JSON body."""
        return {
            "session_id": self.session_id,
            "layer_count": self.layer_count,
            "layers": [
                {
                    "layer_id": layer.layer_id,
                    "image_base64": layer.image_base64,
                    "strength": layer.strength,
                    "message": layer.message,
                }
                for layer in self.layers
            ],
        }


@dataclass(frozen=True)
class LayerResult:
    """Normalized outcome for a single layer."""

    layer_id: str
    protected: bool
    bit_accuracy: float
    watermark_hash: str
    error: str | None = None
    robustness: float = 0.8

    def to_dict(self) -> dict[str, object]:
        return {
            "layer_id": self.layer_id,
            "protected": self.protected,
            "bit_accuracy": self.bit_accuracy,
            "watermark_hash": self.watermark_hash,
            "error": self.error,
            "robustness": self.robustness,
        }


@dataclass(frozen=True)
class ProtectionReport:
    """Aggregated verdict of one protection cycle."""

    session_id: str
    total_layers: int
    results: dict[str, LayerResult]
    processing_duration_seconds: float
    version_number: int = 1
    trigger: str = "manual"
    primary_layer_id: str | None = None
    thresholds: TierThresholds = DEFAULT_TIER_THRESHOLDS
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def protected_count(self) -> int:
        return sum(1 for result in self.results.values() if result.protected)

    @property
    def verification_tier(self) -> VerificationTier:
        return self.thresholds.tier_for(self.protected_count, self.total_layers)

    @property
    def success_rate(self) -> float:
        if self.total_layers <= 0:
            return 0.0
        return self.protected_count / self.total_layers


@dataclass(frozen=True)
class FallbackRecord:
    """Where captured payloads were written after delivery was exhausted."""

    session_id: str
    location: Path
    files_written: int
    reason: str
