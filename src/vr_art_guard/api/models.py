"""Pydantic models for control API payloads."""

from pydantic import BaseModel, Field


class StrokeRequest(BaseModel):
    """One or more brush strokes reported by the host."""

    count: int = Field(default=1, ge=1, le=1000)
    position: tuple[float, float, float] | None = None


class ToolChangeRequest(BaseModel):
    """Tool switch reported by the host."""

    tool: str = Field(min_length=1)


class VerifyRequest(BaseModel):
    """Base64-encoded image to check for a watermark."""

    image: str = Field(min_length=1)
    session_id: str = ""
