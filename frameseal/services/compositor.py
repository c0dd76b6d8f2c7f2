from __future__ import annotations

import logging
from typing import Optional

from PIL import Image

from frameseal.services.canvas import extend_canvas, round_corners
from frameseal.services.errors import CancelToken, check_cancelled
from frameseal.services.frame_config import FrameConfig
from frameseal.services.metadata import assemble_metadata_line, load_profile, upright_exif
from frameseal.services.typography import draw_text, fit_text, paste_icon, scale_icon

logger = logging.getLogger(__name__)


def compose_frame(image: Image.Image, config: FrameConfig, token: Optional[CancelToken] = None) -> Image.Image:
	"""
	Frame ``image`` per ``config`` and return a new RGBA image.

	Stages: border extension, corner rounding, metadata line, font fit,
	icon/text layout, draw. The token is checked before every stage but
	the final draw. The input is returned as-is when the config is a no-op.
	"""
	check_cancelled(token)
	if config.is_noop:
		return image

	w, h = image.size
	geom = config.border_geometry(w, h)
	result = extend_canvas(image, geom, config.border_color)
	exif = upright_exif(image.info.get("exif"))
	result.info.pop("exif", None)
	if exif:
		result.info["exif"] = exif

	check_cancelled(token)
	if config.corner_ratio > 0:
		radius = config.corner_radius(geom.canvas_width, geom.canvas_height)
		result = round_corners(result, geom, radius, config.border_color, (w, h))
		if exif:
			result.info["exif"] = exif
	if geom.bottom == 0:
		return result

	check_cancelled(token)
	info = assemble_metadata_line(config.extractors, load_profile(image), config.show_placeholders)
	if not info and config.icon is None:
		return result

	check_cancelled(token)
	target = config.text_target_height(geom.bottom)
	fitted = fit_text(info, config.font_name, target) if info else None
	text_h = fitted.height if fitted else target
	text_w = fitted.width if fitted else 0.0
	band_y = round(geom.canvas_height - geom.bottom / 2 - text_h / 2)
	text_x = geom.canvas_width / 2 - text_w / 2

	check_cancelled(token)
	icon = None
	icon_x = 0
	if config.icon is not None:
		icon = scale_icon(config.icon, round(text_h))
		gap = config.icon_gap_ratio * text_h
		icon_x = round(text_x - gap / 2 - icon.width / 2)
		text_x += gap / 2 + icon.width / 2

	if icon is not None:
		paste_icon(result, icon, icon_x, band_y)
	if fitted is not None:
		draw_text(result, fitted, text_x, band_y + fitted.ascent, config.text_color)
	logger.debug(f"framed {w}x{h} -> {geom.canvas_width}x{geom.canvas_height}, text={info!r}")
	return result
