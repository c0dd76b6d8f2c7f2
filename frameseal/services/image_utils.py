from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Tuple, Union

from PIL import ExifTags, Image, ImageColor

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

# Malformed colors are painted red so the mistake is visible in the output.
SENTINEL_COLOR: RGBA = (255, 0, 0, 255)

SUPPORTED_IMAGE_EXTS = {".bmp", ".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}


def apply_exif_orientation(img: Image.Image, exif) -> Image.Image:
	orientation = None
	if exif:
		tmp = {}
		for tag_id, value in exif.items():
			tag = ExifTags.TAGS.get(tag_id, tag_id)
			tmp[str(tag)] = value
		orientation = tmp.get("Orientation")
	if orientation is None:
		return img
	try:
		o = int(orientation)
	except (TypeError, ValueError):
		return img
	if o == 1:
		return img
	if o == 2:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
	if o == 3:
		return img.rotate(180, expand=True)
	if o == 4:
		return img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
	if o == 5:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(90, expand=True)
	if o == 6:
		return img.rotate(270, expand=True)
	if o == 7:
		return img.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(270, expand=True)
	if o == 8:
		return img.rotate(90, expand=True)
	return img


def load_image(source: Union[Path, BinaryIO]) -> Image.Image:
	"""
	Decode ``source`` (a path or binary stream) fully, upright per its EXIF orientation.
	The raw EXIF bytes (if any) stay available in ``info["exif"]``.
	"""
	with Image.open(source) as src:
		src.load()
		exif_bytes = src.info.get("exif")
		img = apply_exif_orientation(src, src.getexif())
		if img is src:
			img = src.copy()
	if exif_bytes:
		img.info["exif"] = exif_bytes
	return img


def list_image_files(folder: Path) -> list:
	return sorted([p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_IMAGE_EXTS])


def parse_color(value: str) -> RGBA:
	"""Parse a Pillow color string (``#RRGGBB``, ``rgb(...)``, names, bare hex); red on failure."""
	text = (value or "").strip()
	candidates = [text]
	if text and not text.startswith("#"):
		candidates.append("#" + text)
	for candidate in candidates:
		try:
			rgb = ImageColor.getcolor(candidate, "RGBA")
		except ValueError:
			continue
		return tuple(int(c) for c in rgb)  # type: ignore[return-value]
	logger.warning(f"Unparseable color {value!r}, using sentinel red")
	return SENTINEL_COLOR


def flatten_alpha(img: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
	if img.mode == "RGB":
		return img
	if img.mode not in ("RGBA", "LA", "PA") and "transparency" not in img.info:
		return img.convert("RGB")
	rgba = img.convert("RGBA")
	base = Image.new("RGBA", rgba.size, background + (255,))
	base.alpha_composite(rgba)
	return base.convert("RGB")
