"""
MarkerForge Configuration
=========================

This module handles configuration loading for the marker service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    MARKER_FORGE_CONFIG            -> explicit config file path
    MARKER_FORGE_FIT_MODE          -> pipeline.fit_mode
    MARKER_FORGE_WORKING_SIZE      -> pipeline.working_size
    MARKER_FORGE_BORDER_ENABLED    -> pipeline.border_enabled
    MARKER_FORGE_PATTERN_BACKEND   -> pipeline.pattern_backend
    MARKER_FORGE_COMPILER_COMMAND  -> compiler.command (shell-style string)
    MARKER_FORGE_STORAGE_ROOT      -> storage.root
    MARKER_FORGE_PUBLIC_BASE_URL   -> server.public_base_url
    RAILWAY_PUBLIC_DOMAIN          -> server.public_base_url (https://<domain>)
    MARKER_FORGE_PORT              -> server.port
    MARKER_FORGE_LOG_LEVEL         -> logging.level
    PORT                           -> server.port (PaaS)

Example:
    from marker_forge.config import settings

    print(settings.pipeline.fit_mode)
    print(settings.border.canvas_size)
"""

import os
import logging
import shlex
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, model_validator

from marker_forge.models.pipeline import FitMode, Interpolation, PatternBackend


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="marker-forge", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class PipelineConfig(BaseModel):
    """
    Pipeline policy.

    One deployment picks ONE fit mode. Pattern and target are always
    generated from the same working image so they never disagree.
    """

    fit_mode: FitMode = Field(
        default=FitMode.COVER,
        description="Fit mode: 'cover', 'inside' or 'fill'",
    )
    working_size: int = Field(
        default=512,
        ge=16,
        le=4096,
        description="Side of the square working image in pixels",
    )
    border_enabled: bool = Field(
        default=False,
        description="Compose the target on a bordered canvas (PNG)",
    )
    pattern_backend: PatternBackend = Field(
        default=PatternBackend.PATT,
        description="Pattern backend: 'patt' or 'mind'",
    )
    interpolation: Interpolation = Field(
        default=Interpolation.AREA,
        description="Interpolation for the working resize",
    )
    jpeg_quality: int = Field(
        default=95,
        ge=1,
        le=100,
        description="JPEG quality of the plain target image",
    )
    min_dimension: int = Field(
        default=300,
        ge=1,
        description="Reject sources narrower or shorter than this",
    )
    prescale_max_dimension: Optional[int] = Field(
        default=None,
        ge=1,
        description="Sources larger than this are shrunk first (None = off)",
    )
    prescale_target: int = Field(
        default=1024,
        ge=16,
        description="Longest side after pre-shrinking an oversized source",
    )
    pad_color: Tuple[int, int, int] = Field(
        default=(255, 255, 255),
        description="RGB letterbox color for the 'inside' fit mode",
    )


class BorderConfig(BaseModel):
    """
    Bordered target geometry.

    These constants are a contract with the AR client that renders and
    matches against the target. Changing them breaks existing clients.
    """

    canvas_size: int = Field(default=512, ge=32, description="Canvas side in pixels")
    border_size: int = Field(default=40, ge=1, description="Border width in pixels")
    border_color: Tuple[int, int, int] = Field(
        default=(0, 0, 0),
        description="RGB color of the outer border",
    )
    background_color: Tuple[int, int, int] = Field(
        default=(255, 255, 255),
        description="RGB canvas background, also the inset underlay",
    )

    @model_validator(mode="after")
    def _check_geometry(self) -> "BorderConfig":
        if 2 * self.border_size >= self.canvas_size:
            raise ValueError("border_size must be less than half of canvas_size")
        return self

    @property
    def inner_size(self) -> int:
        """Side of the inset image area."""
        return self.canvas_size - 2 * self.border_size


class CompilerConfig(BaseModel):
    """External tracking compiler configuration (mind backend)."""

    command: List[str] = Field(
        default_factory=list,
        description="argv with {input}/{output} placeholders; empty = not installed",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Maximum compile time before the step is declared failed",
    )
    min_output_bytes: int = Field(
        default=100,
        ge=0,
        description="Compiled output smaller than this is treated as a failure",
    )
    placeholder: str = Field(
        default="MARKER-FORGE-PLACEHOLDER\n",
        description="Sentinel written when the compiler fails",
    )


class StorageConfig(BaseModel):
    """Artifact storage layout."""

    root: str = Field(default="./public", description="Public root directory")
    markers_dir: str = Field(default="markers", description="Pattern artifacts subdir")
    targets_dir: str = Field(default="targets", description="Target images subdir")


class UploadConfig(BaseModel):
    """Upload acceptance rules."""

    max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Maximum accepted upload size in bytes",
    )
    allowed_extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png"],
        description="Accepted filename extensions (lowercase, with dot)",
    )
    allowed_mime_types: List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/jpg", "image/png"],
        description="Accepted declared MIME types",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL used in artifact links (default: http://localhost:<port>)",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for one generate request",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def base_url(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return f"http://localhost:{self.port}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class EventsConfig(BaseModel):
    """In-memory pipeline event log."""

    buffer_size: int = Field(
        default=200,
        ge=1,
        description="Events retained for /api/logs (drops oldest)",
    )


class Settings(BaseModel):
    """
    Main settings class for MarkerForge.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    border: BorderConfig = Field(default_factory=BorderConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, uses MARKER_FORGE_CONFIG
            or searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("MARKER_FORGE_CONFIG")

    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Pipeline policy
    if env_fit := os.environ.get("MARKER_FORGE_FIT_MODE"):
        config_data.setdefault("pipeline", {})["fit_mode"] = env_fit.lower()
    if env_size := os.environ.get("MARKER_FORGE_WORKING_SIZE"):
        config_data.setdefault("pipeline", {})["working_size"] = int(env_size)
    if env_border := os.environ.get("MARKER_FORGE_BORDER_ENABLED"):
        config_data.setdefault("pipeline", {})["border_enabled"] = (
            env_border.strip().lower() in ("1", "true", "yes", "on")
        )
    if env_backend := os.environ.get("MARKER_FORGE_PATTERN_BACKEND"):
        config_data.setdefault("pipeline", {})["pattern_backend"] = env_backend.lower()

    # Compiler
    if env_cmd := os.environ.get("MARKER_FORGE_COMPILER_COMMAND"):
        config_data.setdefault("compiler", {})["command"] = shlex.split(env_cmd)

    # Storage
    if env_root := os.environ.get("MARKER_FORGE_STORAGE_ROOT"):
        config_data.setdefault("storage", {})["root"] = env_root

    # Public URL (explicit setting wins over the PaaS domain)
    if env_base := os.environ.get("MARKER_FORGE_PUBLIC_BASE_URL"):
        config_data.setdefault("server", {})["public_base_url"] = env_base
    elif env_domain := os.environ.get("RAILWAY_PUBLIC_DOMAIN"):
        config_data.setdefault("server", {})["public_base_url"] = f"https://{env_domain}"

    # Server settings (PaaS platforms use PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("MARKER_FORGE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("MARKER_FORGE_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
