"""
FrameSeal Configuration
=======================

Settings are read from a YAML file and environment variables.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file (or the file named by FRAMESEAL_CONFIG)
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMESEAL_CONFIG        -> path of the YAML file
    FRAMESEAL_LOG_LEVEL     -> logging.level
    FRAMESEAL_OUTPUT_FORMAT -> output.format
    FRAMESEAL_FONT          -> frame.font_name
    FRAMESEAL_WORKERS       -> batch.max_workers
    FRAMESEAL_JOBS_DIR      -> jobs.dir
    FRAMESEAL_PORT / PORT   -> server.port

Example:
    from frameseal.config import settings

    config = settings.frame.to_frame_config()
    print(settings.output.format)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from PIL import Image
from pydantic import BaseModel, Field

from frameseal.services.errors import ConfigError
from frameseal.services.frame_config import (
	DEFAULT_TEXT_HEIGHT_RATIO,
	BorderRatio,
	FieldBinding,
	FrameConfig,
)
from frameseal.services.image_utils import parse_color
from frameseal.services.metadata import MetadataKey, parse_key


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class BorderSettings(BaseModel):
	"""Border ratios; top/bottom of image height, left/right of image width."""

	top: float = Field(default=0.03, description="Top border ratio")
	right: float = Field(default=0.02, description="Right border ratio")
	bottom: float = Field(default=0.06, description="Bottom border ratio")
	left: float = Field(default=0.02, description="Left border ratio")


class FieldSettings(BaseModel):
	"""One metadata slot on the bottom line."""

	key: str = Field(default=MetadataKey.MANUAL.value, description="Metadata key or 'manual'")
	text: Optional[str] = Field(default=None, description="Literal text for the 'manual' key")


def _default_fields() -> List[FieldSettings]:
	return [
		FieldSettings(key=MetadataKey.CAMERA_MODEL.value),
		FieldSettings(key=MetadataKey.FOCAL_LENGTH.value),
		FieldSettings(key=MetadataKey.F_NUMBER.value),
		FieldSettings(key=MetadataKey.EXPOSURE_TIME.value),
		FieldSettings(key=MetadataKey.ISO.value),
	]


class FrameSettings(BaseModel):
	"""
	Frame appearance as configured by the user.

	Ratios are range-checked by FrameConfig when the settings are resolved,
	so a bad value surfaces as a field-specific ConfigError.
	"""

	border: BorderSettings = Field(default_factory=BorderSettings)
	corner_ratio: float = Field(default=0.025, description="Corner radius / shorter side, [0, 0.5]")
	border_color: str = Field(default="#080808", description="Border color (red if unparseable)")
	font_name: str = Field(default="DejaVuSans.ttf", description="TrueType font file name or path")
	text_height_ratio: float = Field(default=DEFAULT_TEXT_HEIGHT_RATIO, description="Text height / bottom border height")
	text_color: str = Field(default="#D0A010", description="Text color (red if unparseable)")
	icon_gap_ratio: float = Field(default=1.25, description="Icon-text gap as a multiple of text height")
	icon_path: Optional[str] = Field(default=None, description="Icon image; disabled when empty")
	fields: List[FieldSettings] = Field(default_factory=_default_fields)
	show_placeholders: bool = Field(default=False, description="Keep '---' for missing tags")

	def to_frame_config(self) -> FrameConfig:
		"""Resolve colors, icon and metadata bindings into a validated FrameConfig."""
		text_ratio = self.text_height_ratio
		if text_ratio <= 0:
			logger.warning(f"text_height_ratio {text_ratio} is not positive, using {DEFAULT_TEXT_HEIGHT_RATIO}")
			text_ratio = DEFAULT_TEXT_HEIGHT_RATIO
		return FrameConfig(
			border_ratio=BorderRatio(
				top=self.border.top,
				right=self.border.right,
				bottom=self.border.bottom,
				left=self.border.left,
			),
			corner_ratio=self.corner_ratio,
			border_color=parse_color(self.border_color),
			text_color=parse_color(self.text_color),
			font_name=self.font_name,
			text_height_ratio=text_ratio,
			icon_gap_ratio=self.icon_gap_ratio,
			icon=load_icon(self.icon_path),
			fields=tuple(FieldBinding(parse_key(f.key), f.text) for f in self.fields),
			show_placeholders=self.show_placeholders,
		)


class OutputSettings(BaseModel):
	"""Output encoder selection."""

	format: str = Field(default="JPG 95", description="Output format name")


class PreviewSettings(BaseModel):
	"""Interactive preview configuration."""

	debounce_ms: int = Field(default=128, ge=0, description="Delay before a preview starts")
	max_side: int = Field(default=1024, ge=64, description="Longest side of the preview thumbnail")


class BatchSettings(BaseModel):
	"""Batch processing configuration."""

	max_workers: int = Field(default=0, ge=0, description="Worker threads (0 = CPU count)")


class JobsSettings(BaseModel):
	"""Background job status storage."""

	dir: str = Field(default="jobs", description="Directory for job status JSON files")


class ServerSettings(BaseModel):
	"""Server configuration."""

	host: str = Field(default="0.0.0.0", description="Bind host")
	port: int = Field(default=8000, ge=1, le=65535, description="Bind port")


class LoggingSettings(BaseModel):
	"""Logging configuration."""

	level: str = Field(default="INFO", description="Log level")
	format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
	"""Top-level FrameSeal settings."""

	frame: FrameSettings = Field(default_factory=FrameSettings)
	output: OutputSettings = Field(default_factory=OutputSettings)
	preview: PreviewSettings = Field(default_factory=PreviewSettings)
	batch: BatchSettings = Field(default_factory=BatchSettings)
	jobs: JobsSettings = Field(default_factory=JobsSettings)
	server: ServerSettings = Field(default_factory=ServerSettings)
	logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_icon(icon_path: Optional[str]) -> Optional[Image.Image]:
	if not icon_path:
		return None
	path = Path(icon_path)
	if not path.is_file():
		raise ConfigError("icon_path", f"icon file {icon_path!r} not found")
	try:
		with Image.open(path) as img:
			return img.convert("RGBA")
	except OSError as e:
		raise ConfigError("icon_path", f"icon {icon_path!r} could not be decoded: {e}") from e


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
	"""
	Load configuration from YAML file and environment variables.

	Args:
		config_path: Path to a YAML file. If None, FRAMESEAL_CONFIG and
			common locations are tried.

	Returns:
		Settings: Loaded configuration
	"""
	if config_path is None:
		config_path = os.environ.get("FRAMESEAL_CONFIG")
	if config_path is None:
		for path in (Path("config.yaml"), Path("config.yml")):
			if path.exists():
				config_path = str(path)
				break

	config_data = {}
	if config_path and Path(config_path).exists():
		logger.info(f"Loading config from: {config_path}")
		with open(config_path, "r", encoding="utf-8") as f:
			config_data = yaml.safe_load(f) or {}
	elif config_path:
		logger.warning(f"Config file {config_path} not found, using defaults and environment variables")

	_apply_env_overrides(config_data)

	return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
	"""Apply environment variable overrides to config data."""
	if env_log := os.environ.get("FRAMESEAL_LOG_LEVEL"):
		config_data.setdefault("logging", {})["level"] = env_log
	if env_format := os.environ.get("FRAMESEAL_OUTPUT_FORMAT"):
		config_data.setdefault("output", {})["format"] = env_format
	if env_font := os.environ.get("FRAMESEAL_FONT"):
		config_data.setdefault("frame", {})["font_name"] = env_font
	if env_workers := os.environ.get("FRAMESEAL_WORKERS"):
		config_data.setdefault("batch", {})["max_workers"] = int(env_workers)
	if env_jobs := os.environ.get("FRAMESEAL_JOBS_DIR"):
		config_data.setdefault("jobs", {})["dir"] = env_jobs

	if env_port := os.environ.get("PORT"):
		config_data.setdefault("server", {})["port"] = int(env_port)
	elif env_port := os.environ.get("FRAMESEAL_PORT"):
		config_data.setdefault("server", {})["port"] = int(env_port)


def setup_logging(settings: Settings, force: bool = False) -> None:
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
		force=force,
	)


# =============================================================================
# Global Settings Instance
# =============================================================================

settings = load_config()
setup_logging(settings)
