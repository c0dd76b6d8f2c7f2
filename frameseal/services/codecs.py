from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from PIL import Image

from frameseal.services.errors import ConfigError
from frameseal.services.image_utils import flatten_alpha

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_FrameSeal"


@dataclass(frozen=True)
class Codec:
	name: str
	ext: str
	pil_format: str
	keep_alpha: bool = False
	exif: bool = False
	options: Dict[str, Any] = field(default_factory=dict)

	def prepare(self, image: Image.Image) -> Image.Image:
		if self.keep_alpha:
			return image if image.mode == "RGBA" else image.convert("RGBA")
		return flatten_alpha(image)


def output_path_for(source: Path, ext: str, taken: Optional[Set[Path]] = None) -> Path:
	"""
	``{stem}_FrameSeal{ext}`` beside ``source``; ``_FrameSeal_2``, ``_3``, ...
	while the name exists on disk or is already in ``taken``. The chosen
	path is added to ``taken``.
	"""
	src = Path(source)
	directory = src.parent
	if not directory.is_dir():
		raise FileNotFoundError(f"Output directory for {src} does not exist")
	candidate = directory / f"{src.stem}{OUTPUT_SUFFIX}{ext}"
	n = 2
	while candidate.exists() or (taken is not None and candidate in taken):
		candidate = directory / f"{src.stem}{OUTPUT_SUFFIX}_{n}{ext}"
		n += 1
	if taken is not None:
		taken.add(candidate)
	return candidate


def _write_atomic(save: Callable[[Path], None], out_path: Path) -> None:
	tmp = out_path.with_name(f".{out_path.name}.{uuid.uuid4().hex}.part")
	try:
		save(tmp)
		os.replace(tmp, out_path)
	except BaseException:
		tmp.unlink(missing_ok=True)
		raise


class OutputCodecRegistry:
	def __init__(self, codecs: Iterable[Codec]) -> None:
		self._codecs: Dict[str, Codec] = {c.name: c for c in codecs}

	def list_formats(self) -> List[str]:
		return list(self._codecs)

	def get(self, format_name: str) -> Codec:
		try:
			return self._codecs[format_name]
		except KeyError:
			raise ConfigError("output.format", f"unsupported output format {format_name!r}") from None

	def write(self, format_name: str, image: Image.Image, out_path: Path) -> Path:
		codec = self.get(format_name)
		prepared = codec.prepare(image)
		params = dict(codec.options)
		exif = image.info.get("exif")
		if codec.exif and exif:
			params["exif"] = exif
		_write_atomic(lambda p: prepared.save(p, format=codec.pil_format, **params), out_path)
		logger.info(f"Saved: {out_path}")
		return out_path

	def encode(self, format_name: str, image: Image.Image, source_path: Path, reserved: Optional[Set[Path]] = None) -> Path:
		codec = self.get(format_name)
		out_path = output_path_for(Path(source_path), codec.ext, reserved)
		return self.write(format_name, image, out_path)


def _jpeg(quality: int) -> Codec:
	return Codec(
		name=f"JPG {quality}",
		ext=".jpg",
		pil_format="JPEG",
		exif=True,
		options={"quality": quality, "optimize": True, "progressive": True, "subsampling": "4:2:0"},
	)


DEFAULT_CODECS = (
	Codec(name="BMP", ext=".bmp", pil_format="BMP"),
	_jpeg(95),
	_jpeg(100),
	Codec(name="PNG 8-bit RGB", ext=".png", pil_format="PNG", exif=True, options={"compress_level": 9}),
	Codec(name="PNG 8-bit RGBA", ext=".png", pil_format="PNG", keep_alpha=True, exif=True, options={"compress_level": 9}),
	Codec(name="TIF ZIP", ext=".tif", pil_format="TIFF", keep_alpha=True, options={"compression": "tiff_adobe_deflate"}),
	Codec(name="WebP lossless", ext=".webp", pil_format="WEBP", keep_alpha=True, exif=True, options={"lossless": True, "quality": 100}),
)

registry = OutputCodecRegistry(DEFAULT_CODECS)
