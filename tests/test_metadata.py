import piexif
import pytest
from PIL import Image

from frameseal.services.errors import ConfigError
from frameseal.services.metadata import (
	PLACEHOLDER,
	MetadataKey,
	assemble_metadata_line,
	exposure_time,
	f_number,
	focal_length,
	iso,
	load_profile,
	parse_key,
	resolve,
	upright_exif,
)


@pytest.mark.parametrize("value, expected", [
	((1, 250), "1/250 s"),
	((1, 3), "1/3 s"),
	((1, 2), "0.5 s"),
	((2, 1), "2 s"),
	((13, 10), "1.3 s"),
	((150, 1), "150 s"),
	((1505, 10), "150.5 s"),
	((37, 100), "0.4 s"),
	((36, 100), "1/3 s"),
])
def test_exposure_time_formatting(value, expected):
	profile = {"Exif": {piexif.ExifIFD.ExposureTime: value}}
	assert exposure_time(profile) == expected


def test_exposure_time_zero_or_missing_is_placeholder():
	assert exposure_time({"Exif": {piexif.ExifIFD.ExposureTime: (0, 1)}}) == PLACEHOLDER
	assert exposure_time({"Exif": {}}) == PLACEHOLDER
	assert exposure_time(None) == PLACEHOLDER


@pytest.mark.parametrize("value, expected", [
	((50, 1), "50 mm"),
	((1200, 10), "120 mm"),
	((245, 10), "24.5 mm"),
	((425, 100), "4.25 mm"),
])
def test_focal_length_formatting(value, expected):
	assert focal_length({"Exif": {piexif.ExifIFD.FocalLength: value}}) == expected


def test_focal_length_falls_back_to_35mm_equivalent():
	profile = {"Exif": {piexif.ExifIFD.FocalLengthIn35mmFilm: 28}}
	assert focal_length(profile) == "28 mm"


@pytest.mark.parametrize("value, expected", [
	((28, 10), "f/2.8"),
	((125, 100), "f/1.25"),
	((11, 1), "f/11"),
	((95, 10), "f/9.5"),
])
def test_f_number_formatting(value, expected):
	assert f_number({"Exif": {piexif.ExifIFD.FNumber: value}}) == expected


def test_iso_accepts_scalar_and_sequence():
	assert iso({"Exif": {piexif.ExifIFD.ISOSpeedRatings: 400}}) == "ISO 400"
	assert iso({"Exif": {piexif.ExifIFD.ISOSpeedRatings: (800, 1600)}}) == "ISO 800"
	assert iso({"Exif": {}}) == PLACEHOLDER


def test_raw_strings_are_stripped_of_nuls():
	extract = resolve("camera_make")
	assert extract({"0th": {piexif.ImageIFD.Make: b"Canon\x00\x00"}}) == "Canon"
	assert extract({"0th": {}}) == PLACEHOLDER


def test_manual_key_echoes_literal():
	extract = resolve(MetadataKey.MANUAL, "Shot on film")
	assert extract(None) == "Shot on film"
	assert extract({"Exif": {}}) == "Shot on film"


def test_unknown_key_is_config_error():
	with pytest.raises(ConfigError) as exc:
		parse_key("shutter_count")
	assert exc.value.field == "fields"


def test_line_drops_placeholders_by_default():
	profile = {"0th": {piexif.ImageIFD.Model: b"X100V"}, "Exif": {piexif.ExifIFD.FNumber: (2, 1)}}
	extractors = [resolve("camera_model"), resolve("iso"), resolve("f_number")]
	assert assemble_metadata_line(extractors, profile) == "X100V  f/2"
	assert assemble_metadata_line(extractors, profile, show_placeholders=True) == "X100V  ---  f/2"


def test_line_skips_empty_manual_text():
	extractors = [resolve("manual", ""), resolve("manual", "A")]
	assert assemble_metadata_line(extractors, None) == "A"


def test_line_without_profile_and_tag_fields_is_empty():
	assert assemble_metadata_line([resolve("iso"), resolve("exposure_time")], None) == ""


def test_load_profile_reads_exif_bytes(photo_with_exif):
	profile = load_profile(photo_with_exif)
	assert profile is not None
	assert resolve("camera_model")(profile) == "EOS R5"
	assert resolve("lens_model")(profile) == "RF50mm F1.8 STM"


def test_load_profile_ignores_garbage():
	img = Image.new("RGB", (4, 4))
	img.info["exif"] = b"not exif at all"
	assert load_profile(img) is None


def test_upright_exif_resets_orientation():
	rotated = piexif.dump({"0th": {piexif.ImageIFD.Orientation: 6, piexif.ImageIFD.Model: b"EOS R5"}})
	raw = upright_exif(rotated)
	assert piexif.load(raw)["0th"][piexif.ImageIFD.Orientation] == 1
	assert upright_exif(None) is None
