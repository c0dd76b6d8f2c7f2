from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np
from PIL import Image

from frameseal.services.frame_config import BorderGeometry
from frameseal.services.image_utils import RGBA

# Anti-aliasing of the rounded edge.
MASK_BLUR_SIGMA = 0.5
# Fixed-point bits for sub-pixel drawing in cv2.
_SHIFT = 4
_ONE = 1 << _SHIFT


def extend_canvas(img: Image.Image, geom: BorderGeometry, border_color: RGBA) -> Image.Image:
	"""Paint a border-colored canvas and composite ``img`` at (left, top)."""
	src = img if img.mode == "RGBA" else img.convert("RGBA")
	if src.size == (geom.canvas_width, geom.canvas_height):
		# No border: source transparency is kept as is.
		return src.copy()
	canvas = Image.new("RGBA", (geom.canvas_width, geom.canvas_height), border_color)
	canvas.alpha_composite(src, dest=(geom.left, geom.top))
	return canvas


def _fixed(v: float) -> int:
	return int(round(v * _ONE))


def rounded_rect_mask(size: Tuple[int, int], rect: Tuple[int, int, int, int], radius: float, sigma: float = MASK_BLUR_SIGMA) -> np.ndarray:
	"""
	Build a uint8 [H,W] mask: 255 inside the rounded rectangle ``rect``
	(x0, y0, x1, y1 in pixel edges, exclusive end), 0 outside, with a
	Gaussian-blurred transition.
	"""
	w, h = size
	x0, y0, x1, y1 = rect
	mask = np.zeros((h, w), dtype=np.uint8)
	if x1 <= x0 or y1 <= y0:
		return mask
	r = max(0.0, min(radius, (x1 - x0) / 2.0, (y1 - y0) / 2.0))
	# cv2 puts pixel centers on integer coordinates, hence the -0.5 shifts.
	left, right = x0 - 0.5 + r, x1 - 0.5 - r
	top, bottom = y0 - 0.5 + r, y1 - 0.5 - r
	if r < 0.5:
		cv2.rectangle(mask, (x0, y0), (x1 - 1, y1 - 1), 255, thickness=-1)
	else:
		cv2.rectangle(mask, (_fixed(left), y0 * _ONE), (_fixed(right), (y1 - 1) * _ONE), 255, thickness=-1, shift=_SHIFT)
		cv2.rectangle(mask, (x0 * _ONE, _fixed(top)), ((x1 - 1) * _ONE, _fixed(bottom)), 255, thickness=-1, shift=_SHIFT)
		for cx, cy in ((left, top), (right, top), (left, bottom), (right, bottom)):
			cv2.circle(mask, (_fixed(cx), _fixed(cy)), _fixed(r), 255, thickness=-1, lineType=cv2.LINE_8, shift=_SHIFT)
	if sigma > 0:
		mask = cv2.GaussianBlur(mask, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE)
	return mask


def round_corners(canvas: Image.Image, geom: BorderGeometry, radius: float, border_color: RGBA, image_size: Tuple[int, int]) -> Image.Image:
	"""
	Round the corners of the image region inside ``canvas``.
	Without borders the corners turn transparent; with borders they show the border color.
	"""
	w, h = image_size
	rect = (geom.left, geom.top, geom.left + w, geom.top + h)
	mask = rounded_rect_mask(canvas.size, rect, radius)
	has_border = (geom.left, geom.top, geom.right, geom.bottom) != (0, 0, 0, 0)
	if not has_border:
		alpha = np.asarray(canvas.getchannel("A"))
		alpha = cv2.multiply(alpha, mask, scale=1.0 / 255.0)
		out = canvas.copy()
		out.putalpha(Image.fromarray(alpha))
		return out
	backdrop = Image.new("RGBA", canvas.size, border_color)
	return Image.composite(canvas, backdrop, Image.fromarray(mask))
