"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from vr_art_guard.domain.layers import LAYER_MATRIX_PRESETS, LayerMatrix, MapType
from vr_art_guard.services.capture import DEFAULT_MAP_STRENGTHS

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    protection_service_url: str = "http://localhost:5000"
    service_timeout_seconds: float = 25.0
    max_retry_attempts: int = 3
    retry_delay_seconds: float = 1.0
    retry_backoff_factor: float = 1.0
    individual_success_ratio: float = 0.8
    individual_yield_every: int = 3

    layer_matrix: str = "core"
    map_strengths: dict[str, float] = {
        map_type.value: strength for map_type, strength in DEFAULT_MAP_STRENGTHS.items()
    }
    capture_pool_size: int = 8
    capture_resolution: int = 1024
    capture_yield_every: int = 6
    image_source_dir: Path = Path("captures")

    session_timeout_minutes: float = 30.0
    protect_on_milestone: bool = True
    protect_on_tool_change: bool = False
    auto_protection_interval_seconds: float | None = None
    stroke_milestone_interval: int = 25
    complexity_milestone: float = 0.3
    time_milestone_seconds: float = 300.0
    tick_interval_seconds: float = 1.0
    performance_target_seconds: float = 27.0
    performance_history_size: int = 10

    report_store: str = "filesystem"
    reports_dir: Path = Path("protection_reports")
    backup_dir: Path = Path("protection_backups")
    supabase_url: str | None = None
    supabase_service_key: str | None = None

    control_token: str
    artist_id: str = "Artist_001"
    artist_name: str = "Unknown Creator"
    project_name: str = "VR_Artwork"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_layer_matrix(raw: str | None) -> LayerMatrix:
    """Resolve a layer matrix preset name; blank means ``core``."""
    if raw is None:
        return LAYER_MATRIX_PRESETS["core"]
    cleaned = raw.strip().lower()
    if not cleaned:
        return LAYER_MATRIX_PRESETS["core"]
    try:
        return LAYER_MATRIX_PRESETS[cleaned]
    except KeyError:
        known = ", ".join(sorted(LAYER_MATRIX_PRESETS))
        raise ValueError(f"Unknown layer matrix {raw!r}; expected one of {known}") from None


def parse_map_strengths(raw: dict[str, float]) -> dict[MapType, float]:
    """Map configured strengths onto map types, keeping defaults for gaps."""
    strengths = dict(DEFAULT_MAP_STRENGTHS)
    for name, value in raw.items():
        strengths[MapType(name)] = float(value)
    return strengths
