"""Verification tier calculation."""

from dataclasses import dataclass

from vr_art_guard.domain.protection import (
    DEFAULT_TIER_THRESHOLDS,
    TierThresholds,
    VerificationTier,
)


@dataclass(frozen=True)
class VerificationTierCalculator:
    """Pure mapping from protected-layer counts to trust tiers."""

    thresholds: TierThresholds = DEFAULT_TIER_THRESHOLDS

    def calculate(self, protected_count: int, total_layers: int) -> VerificationTier:
        """Return the tier for ``protected_count`` of ``total_layers``."""
        return self.thresholds.tier_for(protected_count, total_layers)

    def describe(self, protected_count: int, total_layers: int) -> str:
        """Human-readable tier label, e.g. ``Forensic (95%, 12/18 layers)``."""
        tier = self.calculate(protected_count, total_layers)
        if tier is VerificationTier.NONE:
            return "None (no protection)"
        return (
            f"{tier.value} ({tier.confidence}% confidence, "
            f"{protected_count}/{total_layers} layers)"
        )
