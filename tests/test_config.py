import logging

import pytest
import yaml
from PIL import Image

from frameseal.config import FrameSettings, load_config, setup_logging
from frameseal.services.errors import ConfigError
from frameseal.services.image_utils import SENTINEL_COLOR, parse_color
from frameseal.services.metadata import MetadataKey


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
	for name in ("FRAMESEAL_CONFIG", "FRAMESEAL_LOG_LEVEL", "FRAMESEAL_OUTPUT_FORMAT", "FRAMESEAL_FONT",
			"FRAMESEAL_WORKERS", "FRAMESEAL_JOBS_DIR", "FRAMESEAL_PORT", "PORT"):
		monkeypatch.delenv(name, raising=False)


def _write_yaml(path, data):
	path.write_text(yaml.safe_dump(data), encoding="utf-8")
	return str(path)


def test_defaults_without_file(tmp_path):
	settings = load_config(str(tmp_path / "missing.yaml"))
	assert settings.output.format == "JPG 95"
	assert settings.frame.border.bottom == 0.06
	assert settings.preview.debounce_ms == 128
	config = settings.frame.to_frame_config()
	assert config.border_color == (8, 8, 8, 255)
	assert config.text_color == (0xD0, 0xA0, 0x10, 255)
	assert [b.key for b in config.fields] == [
		MetadataKey.CAMERA_MODEL,
		MetadataKey.FOCAL_LENGTH,
		MetadataKey.F_NUMBER,
		MetadataKey.EXPOSURE_TIME,
		MetadataKey.ISO,
	]


def test_yaml_values_are_read(tmp_path):
	path = _write_yaml(tmp_path / "config.yaml", {
		"frame": {"corner_ratio": 0.1, "border": {"bottom": 0.2}, "fields": [{"key": "manual", "text": "hi"}]},
		"output": {"format": "PNG 8-bit RGBA"},
	})
	settings = load_config(path)
	assert settings.output.format == "PNG 8-bit RGBA"
	config = settings.frame.to_frame_config()
	assert config.corner_ratio == 0.1
	assert config.border_ratio.bottom == 0.2
	assert config.extractors[0](None) == "hi"


def test_env_overrides_file(tmp_path, monkeypatch):
	path = _write_yaml(tmp_path / "config.yaml", {"output": {"format": "BMP"}})
	monkeypatch.setenv("FRAMESEAL_OUTPUT_FORMAT", "TIF ZIP")
	monkeypatch.setenv("FRAMESEAL_WORKERS", "3")
	monkeypatch.setenv("FRAMESEAL_FONT", "Other.ttf")
	monkeypatch.setenv("FRAMESEAL_PORT", "9001")
	settings = load_config(path)
	assert settings.output.format == "TIF ZIP"
	assert settings.batch.max_workers == 3
	assert settings.frame.font_name == "Other.ttf"
	assert settings.server.port == 9001


def test_config_path_from_environment(tmp_path, monkeypatch):
	path = _write_yaml(tmp_path / "custom.yaml", {"jobs": {"dir": "elsewhere"}})
	monkeypatch.setenv("FRAMESEAL_CONFIG", path)
	assert load_config().jobs.dir == "elsewhere"


def test_non_positive_text_ratio_falls_back(caplog):
	with caplog.at_level(logging.WARNING):
		config = FrameSettings(text_height_ratio=0).to_frame_config()
	assert config.text_height_ratio == 0.33
	assert "text_height_ratio" in caplog.text


def test_bad_colors_become_red():
	config = FrameSettings(border_color="not-a-color", text_color="#12").to_frame_config()
	assert config.border_color == SENTINEL_COLOR
	assert config.text_color == SENTINEL_COLOR


@pytest.mark.parametrize("value, expected", [
	("#FFFFFF", (255, 255, 255, 255)),
	("00ff00", (0, 255, 0, 255)),
	("#11223380", (0x11, 0x22, 0x33, 0x80)),
	("white", (255, 255, 255, 255)),
])
def test_parse_color(value, expected):
	assert parse_color(value) == expected


def test_out_of_range_values_name_the_field():
	with pytest.raises(ConfigError) as exc:
		FrameSettings(corner_ratio=0.7).to_frame_config()
	assert exc.value.field == "corner_ratio"
	with pytest.raises(ConfigError) as exc:
		FrameSettings(fields=[{"key": "nope"}]).to_frame_config()
	assert exc.value.field == "fields"


def test_icon_loading(tmp_path):
	icon_path = tmp_path / "logo.png"
	Image.new("RGB", (20, 10), (255, 0, 0)).save(icon_path)
	config = FrameSettings(icon_path=str(icon_path)).to_frame_config()
	assert config.icon.mode == "RGBA"
	assert config.icon.size == (20, 10)
	with pytest.raises(ConfigError) as exc:
		FrameSettings(icon_path=str(tmp_path / "missing.png")).to_frame_config()
	assert exc.value.field == "icon_path"
	bad = tmp_path / "bad.png"
	bad.write_bytes(b"nope")
	with pytest.raises(ConfigError):
		FrameSettings(icon_path=str(bad)).to_frame_config()


def test_setup_logging_applies_level(tmp_path):
	root = logging.getLogger()
	saved = (root.level, root.handlers[:])
	settings = load_config(str(tmp_path / "missing.yaml"))
	settings.logging.level = "DEBUG"
	setup_logging(settings, force=True)
	assert logging.getLogger().level == logging.DEBUG
	settings.logging.level = "WARNING"
	setup_logging(settings, force=True)
	assert logging.getLogger().level == logging.WARNING
	root.setLevel(saved[0])
	root.handlers[:] = saved[1]
