"""
Configuration management for DepthCam using Pydantic settings.

Loads configuration from:
1. .env file (if present)
2. config/config.json (defaults)
3. Environment variables (override with DEPTHCAM_ prefix)
"""

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
RUNTIME_DIR = PROJECT_ROOT / "runtime"
WEB_DIR = PROJECT_ROOT / "web"

# Load .env file from project root (if exists)
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
    logger.debug(f"Loaded environment from {_env_file}")


def load_json_config() -> dict[str, Any]:
    """Load configuration from config.json file."""
    config_file = CONFIG_DIR / "config.json"
    if config_file.exists():
        with open(config_file) as f:
            return json.load(f)
    return {}


_json_config = load_json_config()


class SensorConfig(BaseSettings):
    """Depth sensor stream configuration."""

    model_config = {"env_prefix": "DEPTHCAM_SENSOR_"}

    backend: str = Field(
        default=_json_config.get("sensor", {}).get("backend", "mock"),
        description="Frame source backend ('mock' for synthetic frames)",
    )
    color_resolution: tuple[int, int] = Field(
        default=tuple(_json_config.get("sensor", {}).get("color_resolution", [640, 480])),
        description="Color/infrared stream resolution",
    )
    depth_resolution: tuple[int, int] = Field(
        default=tuple(_json_config.get("sensor", {}).get("depth_resolution", [320, 240])),
        description="Depth stream resolution",
    )
    framerate: int = Field(
        default=_json_config.get("sensor", {}).get("framerate", 30),
        description="Sensor framerate",
    )

    @field_validator("color_resolution", "depth_resolution", mode="before")
    @classmethod
    def parse_resolution(cls, v):
        if isinstance(v, list):
            return tuple(v)
        return v

    @field_validator("framerate")
    @classmethod
    def validate_framerate(cls, v):
        if v < 1 or v > 60:
            raise ValueError(f"framerate must be between 1 and 60, got {v}")
        return v


class RenderConfig(BaseSettings):
    """Live-view rendering defaults (night switching, IR tone mapping, JPEG)."""

    model_config = {"env_prefix": "DEPTHCAM_RENDER_"}

    auto_night: bool = Field(
        default=_json_config.get("render", {}).get("auto_night", True),
        description="Switch to infrared automatically when the scene gets dark",
    )
    night_threshold: float = Field(
        default=_json_config.get("render", {}).get("night_threshold", 36.0),
        description="Average luma below which the camera switches to infrared",
    )
    day_threshold: float = Field(
        default=_json_config.get("render", {}).get("day_threshold", 44.0),
        description="Average luma above which the camera switches back to color",
    )
    green_tint: bool = Field(
        default=_json_config.get("render", {}).get("green_tint", False),
        description="Render infrared frames green instead of gray",
    )
    smooth: bool = Field(
        default=_json_config.get("render", {}).get("smooth", True),
        description="Box blur infrared frames to reduce sensor noise",
    )
    blur_passes: int = Field(
        default=_json_config.get("render", {}).get("blur_passes", 1),
        description="Number of 3x3 box blur passes",
    )
    jpeg_quality: int = Field(
        default=_json_config.get("render", {}).get("jpeg_quality", 60),
        description="JPEG quality for stream and snapshots (10-100)",
    )
    show_skeleton: bool = Field(
        default=_json_config.get("render", {}).get("show_skeleton", True),
        description="Draw tracked skeletons on the live view",
    )
    luma_sample_step: int = Field(
        default=_json_config.get("render", {}).get("luma_sample_step", 8),
        description="Pixel stride for brightness sampling",
    )
    ir_sample_step: int = Field(
        default=_json_config.get("render", {}).get("ir_sample_step", 8),
        description="Pixel stride for infrared min/max sampling",
    )
    motion_label_seconds: float = Field(
        default=_json_config.get("render", {}).get("motion_label_seconds", 3.0),
        description="How long the MOTION label stays on screen",
    )
    day_probe_seconds: float = Field(
        default=_json_config.get("render", {}).get("day_probe_seconds", 60.0),
        description="Interval for sampling the color stream while in infrared (0 disables)",
    )
    placeholder_on_start: bool = Field(
        default=_json_config.get("render", {}).get("placeholder_on_start", False),
        description="Publish a 'waiting for frame' image before the first sensor frame",
    )

    @field_validator("jpeg_quality")
    @classmethod
    def validate_jpeg_quality(cls, v):
        if v < 10 or v > 100:
            raise ValueError(f"jpeg_quality must be 10-100, got {v}")
        return v

    @field_validator("night_threshold", "day_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"luma threshold must be 0-100, got {v}")
        return v

    @field_validator("luma_sample_step", "ir_sample_step", "blur_passes")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v


class MotionConfig(BaseSettings):
    """Depth motion detection configuration."""

    model_config = {"env_prefix": "DEPTHCAM_MOTION_"}

    depth_diff_threshold_mm: int = Field(
        default=_json_config.get("motion", {}).get("depth_diff_threshold_mm", 80),
        description="Per-pixel depth change (mm) that counts as changed",
    )
    motion_pixels_threshold: int = Field(
        default=_json_config.get("motion", {}).get("motion_pixels_threshold", 1200),
        description="Changed pixel count above which motion fires",
    )
    background_alpha: float = Field(
        default=_json_config.get("motion", {}).get("background_alpha", 0.01),
        description="Learning rate of the background depth model",
    )
    max_depth_mm: int = Field(
        default=_json_config.get("motion", {}).get("max_depth_mm", 4000),
        description="Depth readings above this are ignored",
    )
    player_index_bits: int = Field(
        default=_json_config.get("motion", {}).get("player_index_bits", 3),
        description="Low bits of each depth sample reserved for player segmentation",
    )
    snapshot_cooldown_seconds: float = Field(
        default=_json_config.get("motion", {}).get("snapshot_cooldown_seconds", 8.0),
        description="Minimum interval between motion snapshots",
    )
    audio_cooldown_seconds: float = Field(
        default=_json_config.get("motion", {}).get("audio_cooldown_seconds", 10.0),
        description="Minimum interval between motion audio recordings",
    )
    audio_seconds: int = Field(
        default=_json_config.get("motion", {}).get("audio_seconds", 6),
        description="Length of motion-triggered audio recordings",
    )

    @field_validator("background_alpha")
    @classmethod
    def validate_alpha(cls, v):
        if not 0.0 < v <= 1.0:
            raise ValueError(f"background_alpha must be in (0, 1], got {v}")
        return v

    @field_validator("audio_seconds")
    @classmethod
    def validate_audio_seconds(cls, v):
        if v < 1 or v > 30:
            raise ValueError(f"audio_seconds must be 1-30, got {v}")
        return v


class CaptureConfig(BaseSettings):
    """Snapshot/audio output and retention configuration."""

    model_config = {"env_prefix": "DEPTHCAM_CAPTURE_"}

    output_dir: str = Field(
        default=_json_config.get("capture", {}).get(
            "output_dir", str(RUNTIME_DIR / "captures")
        ),
        description="Directory for snapshots and audio recordings",
    )
    max_snapshot_files: int = Field(
        default=_json_config.get("capture", {}).get("max_snapshot_files", 100),
        description="Snapshots kept by retention cleanup",
    )
    max_audio_files: int = Field(
        default=_json_config.get("capture", {}).get("max_audio_files", 100),
        description="Audio recordings kept by retention cleanup",
    )
    cleanup_interval_minutes: float = Field(
        default=_json_config.get("capture", {}).get("cleanup_interval_minutes", 10),
        description="Interval between retention cleanup passes",
    )
    audio_chunk_bytes: int = Field(
        default=_json_config.get("capture", {}).get("audio_chunk_bytes", 4096),
        description="Read size when streaming audio to disk",
    )

    @field_validator("max_snapshot_files", "max_audio_files")
    @classmethod
    def validate_max_files(cls, v):
        if v < 0:
            raise ValueError(f"max file count must be >= 0, got {v}")
        return v


class StreamConfig(BaseSettings):
    """MJPEG streaming configuration."""

    model_config = {"env_prefix": "DEPTHCAM_STREAM_"}

    frame_interval_seconds: float = Field(
        default=_json_config.get("stream", {}).get("frame_interval_seconds", 0.05),
        description="Sleep between multipart frames per client",
    )
    boundary: str = Field(
        default=_json_config.get("stream", {}).get("boundary", "frame"),
        description="Multipart boundary token",
    )


class TiltConfig(BaseSettings):
    """Tilt motor configuration."""

    model_config = {"env_prefix": "DEPTHCAM_TILT_"}

    step_degrees: int = Field(
        default=_json_config.get("tilt", {}).get("step_degrees", 2),
        description="Degrees moved per up/down command",
    )
    cooldown_seconds: float = Field(
        default=_json_config.get("tilt", {}).get("cooldown_seconds", 0.8),
        description="Minimum interval between applied tilt commands",
    )


class APIConfig(BaseSettings):
    """FastAPI server configuration."""

    model_config = {"env_prefix": "DEPTHCAM_API_"}

    enabled: bool = Field(
        default=_json_config.get("api", {}).get("enabled", True),
        description="Enable HTTP server",
    )
    host: str = Field(
        default=_json_config.get("api", {}).get("host", "0.0.0.0"),
        description="API server bind host",
    )
    port: int = Field(
        default=_json_config.get("api", {}).get("port", 8080),
        description="API server port",
    )
    username: str = Field(
        default=_json_config.get("api", {}).get("username", ""),
        description="Basic auth user (auth disabled when empty)",
    )
    password: str = Field(
        default=_json_config.get("api", {}).get("password", ""),
        description="Basic auth password",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = {"env_prefix": "DEPTHCAM_LOGGING_"}

    level: str = Field(
        default=_json_config.get("logging", {}).get("level", "INFO"),
        description="Log level",
    )
    file: str = Field(
        default=_json_config.get("logging", {}).get(
            "file", str(RUNTIME_DIR / "logs" / "depthcam.log")
        ),
        description="Log file path",
    )


# Global configuration instances
sensor_config = SensorConfig()
render_config = RenderConfig()
motion_config = MotionConfig()
capture_config = CaptureConfig()
stream_config = StreamConfig()
tilt_config = TiltConfig()
api_config = APIConfig()
logging_config = LoggingConfig()


def setup_logging() -> None:
    """Configure logging for the application with log rotation."""
    from logging.handlers import RotatingFileHandler

    log_dir = Path(logging_config.file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # 10MB max, keep 5 backups
    file_handler = RotatingFileHandler(
        logging_config.file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(logging.StreamHandler())

    logger.info(
        f"Logging configured: level={logging_config.level}, "
        f"file={logging_config.file} (rotating, 10MB max, 5 backups)"
    )


def ensure_runtime_dirs() -> None:
    """Create runtime directories if they don't exist."""
    dirs = [
        Path(capture_config.output_dir),
        Path(logging_config.file).parent,
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {d}")
