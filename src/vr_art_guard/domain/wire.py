"""Pydantic models for the protection service wire format."""

from pydantic import BaseModel, Field, field_validator


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    batch_support: bool | None = None


class BatchLayerResult(BaseModel):
    """One entry of a batch response."""

    layer_id: str
    success: bool
    bit_accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    watermark_hash: str = ""
    error: str | None = None


class BatchWatermarkResponse(BaseModel):
    """Body of a ``POST /watermark_batch`` response."""

    success: bool
    session_id: str | None = None
    results: list[BatchLayerResult] = Field(default_factory=list)
    total_processing_time: float | None = None


class WatermarkResponse(BaseModel):
    """Body of a ``POST /watermark`` response."""

    success: bool
    bit_accuracy: float | None = Field(default=None, ge=0.0, le=1.0)
    hash: str | None = None
    filepath: str | None = None


class VerifyResponse(BaseModel):
    """Body of a ``POST /verify`` response."""

    detected: bool
    confidence: float = Field(default=0.0, ge=0.0)
    message: str = ""

    @field_validator("confidence")
    @classmethod
    def normalize_confidence(cls, value: float) -> float:
        """Accept percentages as well as fractions."""
        if value > 1.0:
            value = value / 100.0
        return min(value, 1.0)
