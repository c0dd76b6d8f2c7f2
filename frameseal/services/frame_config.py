from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

from PIL import Image

from frameseal.services.errors import ConfigError
from frameseal.services.image_utils import RGBA, SENTINEL_COLOR
from frameseal.services.metadata import Extractor, MetadataKey, parse_key, resolve

MAX_FIELDS = 5
DEFAULT_TEXT_HEIGHT_RATIO = 0.33


@dataclass(frozen=True)
class BorderRatio:
	"""Border widths as fractions of image height (top/bottom) or width (left/right)."""
	top: float = 0.0
	right: float = 0.0
	bottom: float = 0.0
	left: float = 0.0

	def is_zero(self) -> bool:
		return self.top == 0 and self.right == 0 and self.bottom == 0 and self.left == 0


@dataclass(frozen=True)
class BorderGeometry:
	canvas_width: int
	canvas_height: int
	left: int
	top: int
	right: int
	bottom: int


@dataclass(frozen=True)
class FieldBinding:
	key: MetadataKey
	literal: Optional[str] = None

	def resolve(self) -> Extractor:
		return resolve(self.key, self.literal)


@dataclass(frozen=True)
class FrameConfig:
	border_ratio: BorderRatio = field(default_factory=BorderRatio)
	corner_ratio: float = 0.0
	border_color: RGBA = SENTINEL_COLOR
	text_color: RGBA = SENTINEL_COLOR
	font_name: str = "DejaVuSans.ttf"
	text_height_ratio: float = DEFAULT_TEXT_HEIGHT_RATIO
	icon_gap_ratio: float = 1.25
	icon: Optional[Image.Image] = None
	fields: Tuple[FieldBinding, ...] = ()
	show_placeholders: bool = False

	def __post_init__(self) -> None:
		validate(self)
		# Bindings are normalized once; the extractors are pure and shareable.
		object.__setattr__(self, "fields", tuple(
			b if isinstance(b, FieldBinding) else FieldBinding(parse_key(b[0]), b[1] if len(b) > 1 else None)
			for b in self.fields
		))
		object.__setattr__(self, "_extractors", tuple(b.resolve() for b in self.fields))

	@property
	def extractors(self) -> Tuple[Extractor, ...]:
		return self._extractors  # type: ignore[attr-defined]

	@property
	def is_noop(self) -> bool:
		return self.corner_ratio == 0 and self.border_ratio.is_zero()

	def border_geometry(self, width: int, height: int) -> BorderGeometry:
		b = self.border_ratio
		canvas_w = round(width * (1 + b.left + b.right))
		canvas_h = round(height * (1 + b.top + b.bottom))
		left = round(width * b.left)
		top = round(height * b.top)
		return BorderGeometry(
			canvas_width=canvas_w,
			canvas_height=canvas_h,
			left=left,
			top=top,
			right=max(0, canvas_w - width - left),
			bottom=max(0, canvas_h - height - top),
		)

	def corner_radius(self, canvas_width: int, canvas_height: int) -> float:
		return self.corner_ratio * min(canvas_width, canvas_height)

	def text_target_height(self, bottom_px: float) -> float:
		return self.text_height_ratio * bottom_px


def _finite(value: float) -> bool:
	return isinstance(value, (int, float)) and math.isfinite(value)


def validate(config: FrameConfig) -> None:
	"""Fail fast on the first violated constraint, naming the field."""
	if not _finite(config.corner_ratio) or not 0 <= config.corner_ratio <= 0.5:
		raise ConfigError("corner_ratio", f"{config.corner_ratio!r} is outside [0, 0.5]")
	b = config.border_ratio
	for name in ("top", "right", "bottom", "left"):
		value = getattr(b, name)
		if not _finite(value) or value < 0:
			raise ConfigError(f"border_ratio.{name}", f"{value!r} must be a non-negative number")
	if not _finite(config.text_height_ratio) or config.text_height_ratio <= 0:
		raise ConfigError("text_height_ratio", f"{config.text_height_ratio!r} must be greater than 0")
	if not _finite(config.icon_gap_ratio):
		raise ConfigError("icon_gap_ratio", f"{config.icon_gap_ratio!r} must be a finite number")
	if len(config.fields) > MAX_FIELDS:
		raise ConfigError("fields", f"at most {MAX_FIELDS} metadata fields are supported, got {len(config.fields)}")
