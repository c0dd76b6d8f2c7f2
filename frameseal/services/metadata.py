from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

import piexif
from PIL import Image

from frameseal.services.errors import ConfigError

logger = logging.getLogger(__name__)

Profile = Optional[Dict[str, Any]]
Extractor = Callable[[Profile], str]

# Shown when a tag is missing or cannot be read.
PLACEHOLDER = "---"
SEPARATOR = "  "


class MetadataKey(str, Enum):
	MANUAL = "manual"
	CAMERA_MODEL = "camera_model"
	CAMERA_MAKE = "camera_make"
	LENS_MODEL = "lens_model"
	LENS_MAKE = "lens_make"
	FOCAL_LENGTH = "focal_length"
	FOCAL_LENGTH_35MM = "focal_length_35mm"
	EXPOSURE_TIME = "exposure_time"
	F_NUMBER = "f_number"
	ISO = "iso"
	DATETIME_ORIGINAL = "datetime_original"
	ARTIST = "artist"
	COPYRIGHT = "copyright"
	SOFTWARE = "software"


def _rational_to_float(x: Any) -> Optional[float]:
	if x is None:
		return None
	if isinstance(x, tuple) and len(x) == 2:
		num, den = x
		if not den:
			return None
		return float(num) / float(den)
	try:
		return float(x)
	except (TypeError, ValueError):
		return None


def _bytes_to_str(v: Any) -> Optional[str]:
	if v is None:
		return None
	if isinstance(v, bytes):
		v = v.decode("utf-8", errors="ignore")
	if not isinstance(v, str):
		v = str(v)
	v = v.replace("\x00", "").strip()
	return v or None


def _to_int_safe(v: Any) -> Optional[int]:
	if v is None:
		return None
	if isinstance(v, int):
		return v
	if isinstance(v, (list, tuple)) and v:
		return _to_int_safe(v[0])
	if isinstance(v, bytes):
		s = v.decode("utf-8", errors="ignore").strip()
		return int(s) if s.isdigit() else None
	try:
		return int(v)
	except (TypeError, ValueError):
		return None


def _trim(value: float, decimals: int) -> str:
	"""Format with at most ``decimals`` fractional digits, dropping trailing zeros."""
	text = f"{value:.{decimals}f}"
	if decimals > 0:
		text = text.rstrip("0").rstrip(".")
	return text


def _tag(profile: Profile, ifd: str, tag: int) -> Any:
	if not profile:
		return None
	return (profile.get(ifd) or {}).get(tag)


def _raw_string(ifd: str, tag: int) -> Extractor:
	def extract(profile: Profile) -> str:
		return _bytes_to_str(_tag(profile, ifd, tag)) or PLACEHOLDER
	return extract


def exposure_time(profile: Profile) -> str:
	t = _rational_to_float(_tag(profile, "Exif", piexif.ExifIFD.ExposureTime))
	if t is None or t <= 0:
		return PLACEHOLDER
	if t >= 0.37:
		return f"{_trim(t, 1)} s"
	return f"1/{round(1 / t)} s"


def focal_length_35mm(profile: Profile) -> str:
	f = _to_int_safe(_tag(profile, "Exif", piexif.ExifIFD.FocalLengthIn35mmFilm))
	if f is None or f <= 0:
		return PLACEHOLDER
	return f"{f} mm"


def focal_length(profile: Profile) -> str:
	f = _rational_to_float(_tag(profile, "Exif", piexif.ExifIFD.FocalLength))
	if f is None or f <= 0:
		return focal_length_35mm(profile)
	if f >= 100:
		return f"{_trim(f, 0)} mm"
	if f >= 10:
		return f"{_trim(f, 1)} mm"
	return f"{_trim(f, 2)} mm"


def f_number(profile: Profile) -> str:
	a = _rational_to_float(_tag(profile, "Exif", piexif.ExifIFD.FNumber))
	if a is None or a <= 0:
		return PLACEHOLDER
	if a >= 8:
		return f"f/{_trim(a, 1)}"
	return f"f/{_trim(a, 2)}"


def iso(profile: Profile) -> str:
	value = _to_int_safe(_tag(profile, "Exif", piexif.ExifIFD.ISOSpeedRatings))
	if value is None or value <= 0:
		return PLACEHOLDER
	return f"ISO {value}"


EXTRACTORS: Dict[MetadataKey, Extractor] = {
	MetadataKey.CAMERA_MODEL: _raw_string("0th", piexif.ImageIFD.Model),
	MetadataKey.CAMERA_MAKE: _raw_string("0th", piexif.ImageIFD.Make),
	MetadataKey.LENS_MODEL: _raw_string("Exif", piexif.ExifIFD.LensModel),
	MetadataKey.LENS_MAKE: _raw_string("Exif", piexif.ExifIFD.LensMake),
	MetadataKey.FOCAL_LENGTH: focal_length,
	MetadataKey.FOCAL_LENGTH_35MM: focal_length_35mm,
	MetadataKey.EXPOSURE_TIME: exposure_time,
	MetadataKey.F_NUMBER: f_number,
	MetadataKey.ISO: iso,
	MetadataKey.DATETIME_ORIGINAL: _raw_string("Exif", piexif.ExifIFD.DateTimeOriginal),
	MetadataKey.ARTIST: _raw_string("0th", piexif.ImageIFD.Artist),
	MetadataKey.COPYRIGHT: _raw_string("0th", piexif.ImageIFD.Copyright),
	MetadataKey.SOFTWARE: _raw_string("0th", piexif.ImageIFD.Software),
}


def parse_key(key: Any) -> MetadataKey:
	try:
		return MetadataKey(key)
	except ValueError:
		raise ConfigError("fields", f"unknown metadata key {key!r}") from None


def resolve(key: Any, literal: Optional[str] = None) -> Extractor:
	"""
	Return the function producing the display string for ``key``.
	The ``manual`` key echoes ``literal`` regardless of the profile.
	"""
	k = parse_key(key)
	if k is MetadataKey.MANUAL:
		text = literal or ""
		return lambda _profile: text
	return EXTRACTORS[k]


def assemble_metadata_line(extractors: Iterable[Extractor], profile: Profile, show_placeholders: bool = False) -> str:
	items = []
	for extract in extractors:
		value = (extract(profile) or "").strip()
		if not value:
			continue
		if value == PLACEHOLDER and not show_placeholders:
			continue
		items.append(value)
	return SEPARATOR.join(items)


def load_profile(img: Image.Image) -> Profile:
	raw = img.info.get("exif")
	if not raw:
		return None
	try:
		return piexif.load(raw)
	except Exception as e:
		logger.debug(f"Unreadable EXIF ignored: {e}")
		return None


def upright_exif(raw: Optional[bytes]) -> Optional[bytes]:
	"""Re-serialize EXIF with Orientation reset to 1, since pixels are already upright."""
	if not raw:
		return None
	try:
		ex = piexif.load(raw)
		ex.setdefault("0th", {})[piexif.ImageIFD.Orientation] = 1
		# Thumbnails frequently fail to round-trip and are never shown.
		ex["thumbnail"] = None
		ex["1st"] = {}
		return piexif.dump(ex)
	except Exception as e:
		logger.warning(f"EXIF could not be carried over: {e}")
		return None
