"""Configuration loader for the network visualization backend."""
from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

ALLOWED_ORIGINS_ENV_VAR = "NETVIZ_ALLOWED_ORIGINS"
EASING_NAMES = ("linear", "quadratic_in_out", "cubic_in_out")
SNAPSHOT_LAYERS = ("edges", "nodes", "edgeLabels", "labels")

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


def _validate_hex_color(value: str) -> str:
    if not _HEX_COLOR.match(value):
        raise ValueError(f"'{value}' is not a #RRGGBB color")
    return value


class AppSectionConfig(_FrozenModel):
    """Application identity."""

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class TableConfig(_FrozenModel):
    """Delimited table parsing options."""

    delimiter: str = Field("\t", min_length=1)
    strip_prefix: str = Field("<", min_length=1)
    strip_suffix: str = Field(">", min_length=1)
    max_upload_mb: int = Field(25, ge=1)


class GraphConfig(_FrozenModel):
    """Graph construction parameters."""

    schema_literal_marker: str = Field("XMLSchema", min_length=1)
    default_edge_weight: int = Field(1, ge=1)


class StylingConfig(_FrozenModel):
    """Color palette and size range used to encode nodes."""

    palette: List[str] = Field(..., min_length=1)
    fallback_color: str = Field("#000000")
    min_size: float = Field(5.0, gt=0)
    max_size: float = Field(20.0, gt=0)
    degenerate_size: Literal["midpoint", "min"] = Field("midpoint")

    @field_validator("palette")
    @classmethod
    def _validate_palette(cls, values: List[str]) -> List[str]:
        return [_validate_hex_color(value) for value in values]

    @field_validator("fallback_color")
    @classmethod
    def _validate_fallback(cls, value: str) -> str:
        return _validate_hex_color(value)

    @model_validator(mode="after")
    def _validate_range(self) -> "StylingConfig":
        if self.min_size >= self.max_size:
            msg = "styling.min_size must be smaller than styling.max_size"
            raise ValueError(msg)
        return self


class LayoutConfig(_FrozenModel):
    """Layout strategy and animation settings."""

    seed_scale: float = Field(1.0, gt=0)
    circular_scale: float = Field(100.0, gt=0)
    animation_duration_seconds: float = Field(2.0, gt=0)
    frame_interval_seconds: float = Field(0.016, gt=0)
    random_easing: str = Field("quadratic_in_out")
    circular_easing: str = Field("linear")
    forceatlas2_iterations_per_batch: int = Field(1, ge=1)
    forceatlas2_batch_interval_seconds: float = Field(0.0, ge=0.0)
    forceatlas2_settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("random_easing", "circular_easing")
    @classmethod
    def _validate_easing(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in EASING_NAMES:
            msg = f"Unknown easing '{value}'; expected one of {', '.join(EASING_NAMES)}"
            raise ValueError(msg)
        return normalized


class InteractionConfig(_FrozenModel):
    """Pointer gesture thresholds."""

    click_threshold_px: float = Field(6.0, gt=0)


class ExportConfig(_FrozenModel):
    """Defaults for image snapshots."""

    file_name: str = Field("graph", min_length=1)
    format: Literal["png", "jpeg"] = Field("png")
    background_color: str = Field("#ffffff")
    layers: List[str] = Field(default_factory=lambda: list(SNAPSHOT_LAYERS))
    dpi: int = Field(100, ge=10)
    output_dir: str = Field("data/snapshots", min_length=1)

    @field_validator("background_color")
    @classmethod
    def _validate_background(cls, value: str) -> str:
        return _validate_hex_color(value)

    @field_validator("layers")
    @classmethod
    def _validate_layers(cls, values: List[str]) -> List[str]:
        unknown = [value for value in values if value not in SNAPSHOT_LAYERS]
        if unknown:
            raise ValueError(f"Unknown snapshot layers: {', '.join(unknown)}")
        return values


class UIConfig(_FrozenModel):
    """Web viewer settings."""

    allowed_origins: List[str] = Field(default_factory=list)
    viewport_width: int = Field(1280, ge=1)
    viewport_height: int = Field(800, ge=1)
    poll_interval_ms: int = Field(100, ge=10)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    app: AppSectionConfig
    table: TableConfig
    graph: GraphConfig
    styling: StylingConfig
    layout: LayoutConfig
    interaction: InteractionConfig
    export: ExportConfig
    ui: UIConfig

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    if os.getenv("NETVIZ_SKIP_ENV_FILE"):
        return None
    override = os.getenv("NETVIZ_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _strip_inline_comment(value: str) -> str:
    """Remove inline comments from an environment value when unquoted."""

    comment_index = value.find("#")
    if comment_index == -1:
        return value
    return value[:comment_index].rstrip()


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                if "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                key = key.strip()
                if not key:
                    continue
                existing_value = os.environ.get(key)
                if existing_value is not None and existing_value.strip() != "":
                    continue
                value = raw_value.strip()
                if not value:
                    os.environ[key] = ""
                    continue
                if value[0] in {'"', "'"} and value[-1] == value[0]:
                    os.environ[key] = value[1:-1]
                    continue
                os.environ[key] = _strip_inline_comment(value)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _parse_origins(value: str) -> List[str]:
    """Split an environment value into unique, ordered origins."""

    unique: List[str] = []
    for candidate in re.split(r"[,\s]+", value):
        candidate = candidate.strip()
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    raw_origins = os.getenv(ALLOWED_ORIGINS_ENV_VAR)
    if raw_origins:
        origins = _parse_origins(raw_origins)
        if origins:
            ui_section = raw_content.setdefault("ui", {})
            ui_section["allowed_origins"] = origins
            LOGGER.info("UI allowed origins overridden from environment (count=%d)", len(origins))
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
