from __future__ import annotations

import sys
from pathlib import Path

import piexif
import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from frameseal.services.frame_config import BorderRatio, FieldBinding, FrameConfig
from frameseal.services.metadata import MetadataKey


def make_exif(orientation: int = 1) -> bytes:
	return piexif.dump({
		"0th": {
			piexif.ImageIFD.Make: b"Canon",
			piexif.ImageIFD.Model: b"EOS R5",
			piexif.ImageIFD.Orientation: orientation,
		},
		"Exif": {
			piexif.ExifIFD.ExposureTime: (1, 250),
			piexif.ExifIFD.FNumber: (28, 10),
			piexif.ExifIFD.ISOSpeedRatings: 400,
			piexif.ExifIFD.FocalLength: (50, 1),
			piexif.ExifIFD.DateTimeOriginal: b"2024:05:01 10:20:30",
			piexif.ExifIFD.LensModel: b"RF50mm F1.8 STM",
		},
	})


@pytest.fixture
def exif_bytes() -> bytes:
	return make_exif()


@pytest.fixture
def photo() -> Image.Image:
	return Image.new("RGB", (1000, 800), (40, 90, 160))


@pytest.fixture
def photo_with_exif(photo, exif_bytes) -> Image.Image:
	photo.info["exif"] = exif_bytes
	return photo


@pytest.fixture
def icon() -> Image.Image:
	img = Image.new("RGBA", (60, 30), (0, 0, 0, 0))
	img.paste((255, 255, 255, 255), (5, 5, 55, 25))
	return img


@pytest.fixture
def jpeg_file(tmp_path, exif_bytes) -> Path:
	path = tmp_path / "photo.jpg"
	Image.new("RGB", (1000, 800), (200, 120, 40)).save(path, "JPEG", exif=exif_bytes)
	return path


@pytest.fixture
def frame_config() -> FrameConfig:
	"""Borders of the reference layout, black border, white text, one manual field."""
	return FrameConfig(
		border_ratio=BorderRatio(top=0.06, right=0.04, bottom=0.10, left=0.04),
		corner_ratio=0.04,
		border_color=(0, 0, 0, 255),
		text_color=(255, 255, 255, 255),
		text_height_ratio=0.33,
		fields=(FieldBinding(MetadataKey.MANUAL, "FrameSeal 50mm"),),
	)
