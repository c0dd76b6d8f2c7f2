from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from frameseal.config import load_config, setup_logging
from frameseal.services.batch_pipeline import run_batch
from frameseal.services.codecs import registry
from frameseal.services.errors import ConfigError
from frameseal.services.image_utils import SUPPORTED_IMAGE_EXTS, list_image_files

logger = logging.getLogger(__name__)


def collect_inputs(inputs: List[str]) -> List[Path]:
	paths: List[Path] = []
	for raw in inputs:
		p = Path(raw)
		if p.is_dir():
			# Earlier outputs are not framed again.
			paths.extend(f for f in list_image_files(p) if "_FrameSeal" not in f.stem)
		elif p.suffix.lower() in SUPPORTED_IMAGE_EXTS:
			paths.append(p)
		else:
			logger.warning(f"Skipping {p}: not a supported image")
	return paths


def main(argv: Optional[List[str]] = None) -> int:
	parser = argparse.ArgumentParser(description="Add a framed border with capture info to photos")
	parser.add_argument("--input", required=True, nargs="+", help="Image files and/or folders")
	parser.add_argument("--config", default=None, help="YAML settings file (default: FRAMESEAL_CONFIG or ./config.yaml)")
	parser.add_argument("--format", default=None, choices=registry.list_formats(), help="Output format")
	parser.add_argument("--workers", type=int, default=None, help="Worker threads (0 = CPU count)")
	args = parser.parse_args(argv)

	settings = load_config(args.config)
	setup_logging(settings, force=True)

	paths = collect_inputs(args.input)
	if not paths:
		raise SystemExit(f"No images found in: {' '.join(args.input)}")

	try:
		config = settings.frame.to_frame_config()
		report = run_batch(
			paths,
			config,
			args.format or settings.output.format,
			max_workers=args.workers if args.workers is not None else settings.batch.max_workers,
		)
	except ConfigError as e:
		print(f"Invalid configuration: {e}", file=sys.stderr)
		return 2

	print(f"Framed {report.success_count}/{len(paths)} image(s)")
	for path, error in report.failures:
		print(f"  FAILED {path}: {error}", file=sys.stderr)
	return 1 if report.failures else 0


if __name__ == "__main__":
	sys.exit(main())
