"""
longscribe.config - YAML config loading, merging, validation.

Handles loading longscribe.yaml, merging command-line overrides over
file values, and validating every engine and chunking parameter.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from longscribe.exceptions import ConfigError

CONFIG_FILENAME = "longscribe.yaml"


class ChunkPolicy(BaseModel):
    """Tunable constants for chunking, timeouts and stitching.

    The stitching tolerances and the window timeout floor are empirical
    and should be validated against real recordings.
    """

    max_chunk_duration: float = Field(default=55.0, gt=0.0)
    chunk_overlap: float = Field(default=2.0, ge=0.0)
    window_timeout_floor: float = Field(default=70.0, ge=0.0)
    window_timeout_padding: float = Field(default=5.0, ge=0.0)
    probe_timeout: float = Field(default=5.0, gt=0.0)
    probe_sample_duration: float = Field(default=10.0, gt=0.0)
    max_probe_candidates: int = Field(default=5, ge=1)
    overlap_trim_tolerance: float = Field(default=0.5, ge=0.0)
    seam_tolerance: float = Field(default=0.3, ge=0.0)

    @model_validator(mode="after")
    def validate_overlap(self) -> ChunkPolicy:
        if self.chunk_overlap >= self.max_chunk_duration:
            raise ValueError("chunk_overlap must be smaller than max_chunk_duration")
        return self


class TranscriptionConfig(BaseModel):
    """Resolved configuration for a transcription run."""

    engine_backend: str = "faster"
    whisper_model: str = "medium"
    whisper_device: str = "auto"
    whisper_compute_type: str = "auto"

    language: str | None = None
    auto_detect_language: bool = False
    preferred_languages: list[str] = Field(default_factory=list)

    on_device: bool = True
    partial_results: bool = True
    timeout_salvage: bool | None = None

    policy: ChunkPolicy = Field(default_factory=ChunkPolicy)

    config_path: Path | None = None

    @field_validator("engine_backend")
    @classmethod
    def validate_engine_backend(cls, v: str) -> str:
        valid = {"faster", "mlx"}
        if v not in valid:
            raise ValueError(f"engine_backend must be one of: {valid}")
        return v

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("language must not be empty")
        return v


def find_config_file(start: Path | None = None) -> Path | None:
    """Find longscribe.yaml by walking up from ``start`` (default: cwd)."""
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def merge_config(overrides: dict[str, Any], base: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides onto base values. Overrides take precedence."""
    merged = base.copy()
    for key, value in overrides.items():
        if key == "policy" and isinstance(value, dict):
            policy = dict(merged.get("policy") or {})
            policy.update({k: v for k, v in value.items() if v is not None})
            merged["policy"] = policy
        elif value is not None:
            merged[key] = value
    return merged


def build_config(raw: dict[str, Any], config_path: Path | None = None) -> TranscriptionConfig:
    """Validate a raw config dict, raising ConfigError on bad values."""
    data = dict(raw)
    if config_path is not None:
        data["config_path"] = config_path
    try:
        return TranscriptionConfig(**data)
    except ValidationError as e:
        source = config_path or "configuration"
        raise ConfigError(f"Invalid {source}: {e}") from e


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> TranscriptionConfig:
    """Load and validate configuration.

    Args:
        path: Path to a longscribe.yaml file (defaults only if None)
        overrides: Values that win over the file, e.g. from the CLI

    Returns:
        Validated TranscriptionConfig

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist
        ConfigError: If the file or overrides contain invalid values
    """
    raw_config: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"No config file found at {path}")
        with open(path) as f:
            try:
                raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {path}: {e}") from e
        if not isinstance(raw_config, dict):
            raise ConfigError(f"{path} must contain a mapping")

    merged = merge_config(overrides or {}, raw_config)
    return build_config(merged, path)


def create_default_config() -> dict[str, Any]:
    """Create a default config dict for a new longscribe.yaml."""
    defaults = TranscriptionConfig()
    return {
        "engine_backend": defaults.engine_backend,
        "whisper_model": defaults.whisper_model,
        "language": defaults.language,
        "auto_detect_language": defaults.auto_detect_language,
        "preferred_languages": [],
        "on_device": defaults.on_device,
        "partial_results": defaults.partial_results,
        "policy": defaults.policy.model_dump(),
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
