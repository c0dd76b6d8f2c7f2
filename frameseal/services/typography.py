from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image, ImageDraw, ImageFont

from frameseal.services.errors import MetricError
from frameseal.services.image_utils import RGBA

logger = logging.getLogger(__name__)

INITIAL_POINT_SIZE = 14.0
FIT_TOLERANCE = 0.0468
MAX_FIT_ATTEMPTS = 5
# Stroke width relative to point size; the stroke is drawn at half opacity.
STROKE_RATIO = 0.018


@dataclass(frozen=True)
class FittedText:
	text: str
	font: ImageFont.FreeTypeFont
	size: float
	ascent: int
	width: float
	height: int
	attempts: int


@lru_cache(maxsize=32)
def _font_available(name: str) -> bool:
	try:
		ImageFont.truetype(name, 12)
	except OSError:
		logger.warning(f"Font {name!r} not found, falling back to Pillow's default font")
		return False
	return True


def load_font(name: str, size: float) -> ImageFont.FreeTypeFont:
	if size < 1:
		raise MetricError(f"font size {size:.3f}pt is too small to render")
	if name and _font_available(name):
		return ImageFont.truetype(name, size)
	font = ImageFont.load_default(size)
	if not isinstance(font, ImageFont.FreeTypeFont):
		raise MetricError("no scalable font available (Pillow built without FreeType)")
	return font


def fit_text(text: str, font_name: str, target_height: float) -> FittedText:
	"""
	Search a point size whose line height (ascent + descent) lands within
	FIT_TOLERANCE of ``target_height``; each miss rescales the size by
	target/measured. Raises MetricError after MAX_FIT_ATTEMPTS misses.
	"""
	if not target_height > 0:
		raise MetricError(f"target text height must be positive, got {target_height!r}")
	size = INITIAL_POINT_SIZE
	for attempt in range(1, MAX_FIT_ATTEMPTS + 1):
		font = load_font(font_name, size)
		ascent, descent = font.getmetrics()
		height = ascent + descent
		if height <= 0:
			raise MetricError(f"font {font_name!r} reports zero height at {size:.2f}pt")
		logger.debug(f"fit attempt {attempt}: {size:.2f}pt -> {height}px (target {target_height:.2f}px)")
		if abs(height - target_height) <= target_height * FIT_TOLERANCE:
			return FittedText(
				text=text,
				font=font,
				size=size,
				ascent=ascent,
				width=font.getlength(text),
				height=height,
				attempts=attempt,
			)
		size *= target_height / height
	raise MetricError(
		f"no font size within {FIT_TOLERANCE:.2%} of {target_height:.2f}px after {MAX_FIT_ATTEMPTS} attempts"
	)


def draw_text(canvas: Image.Image, fitted: FittedText, x: float, baseline: float, color: RGBA) -> None:
	layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
	draw = ImageDraw.Draw(layer)
	stroke = max(1, round(fitted.size * STROKE_RATIO))
	half = (color[0], color[1], color[2], color[3] // 2)
	draw.text(
		(x, baseline),
		fitted.text,
		font=fitted.font,
		fill=color,
		anchor="ls",
		stroke_width=stroke,
		stroke_fill=half,
	)
	canvas.alpha_composite(layer)


def paste_icon(canvas: Image.Image, icon: Image.Image, x: int, y: int) -> None:
	layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
	layer.paste(icon, (x, y), icon)
	canvas.alpha_composite(layer)


def scale_icon(icon: Image.Image, height: int) -> Image.Image:
	"""Per-use copy scaled to ``height``, width following the aspect ratio."""
	h = max(1, height)
	w = max(1, round(icon.width * h / icon.height))
	return icon.convert("RGBA").resize((w, h), Image.Resampling.LANCZOS)
