from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from frameseal.services.codecs import OutputCodecRegistry, output_path_for, registry
from frameseal.services.compositor import compose_frame
from frameseal.services.errors import CancelToken, Cancelled, ConfigError, check_cancelled
from frameseal.services.frame_config import FrameConfig
from frameseal.services.image_utils import load_image
from frameseal.services.status_store import write_status

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
	success_count: int = 0
	failures: List[Tuple[str, str]] = field(default_factory=list)
	outputs: List[str] = field(default_factory=list)
	cancelled: bool = False

	def to_dict(self) -> Dict[str, Any]:
		return {
			"success_count": self.success_count,
			"failures": [{"path": p, "error": e} for p, e in self.failures],
			"outputs": self.outputs,
			"cancelled": self.cancelled,
		}


def process_image(
	source: Path,
	out_path: Path,
	config: FrameConfig,
	format_name: str,
	codecs: OutputCodecRegistry = registry,
	token: Optional[CancelToken] = None,
) -> Path:
	img = load_image(source)
	framed = compose_frame(img, config, token)
	check_cancelled(token)
	return codecs.write(format_name, framed, out_path)


def run_batch(
	paths: Sequence[Path],
	config: FrameConfig,
	format_name: str,
	max_workers: int = 0,
	token: Optional[CancelToken] = None,
	codecs: OutputCodecRegistry = registry,
) -> BatchReport:
	"""
	Frame and encode every image in ``paths``.

	Output names are reserved sequentially up front, then images run in a
	thread pool. A failing image is recorded in the report and never stops
	the rest; cancellation stops scheduling and is not reported as a failure.
	"""
	if not paths:
		raise ConfigError("paths", "no images to process")
	codec = codecs.get(format_name)
	report = BatchReport()

	taken: Set[Path] = set()
	jobs: List[Tuple[Path, Path]] = []
	for p in paths:
		source = Path(p)
		try:
			jobs.append((source, output_path_for(source, codec.ext, taken)))
		except OSError as e:
			logger.warning(f"{source}: {e}")
			report.failures.append((str(source), str(e)))

	workers = max_workers or os.cpu_count() or 1
	logger.info(f"Framing {len(jobs)} image(s) as {format_name} with {workers} worker(s)")
	with ThreadPoolExecutor(max_workers=workers) as pool:
		futures = {
			pool.submit(process_image, source, out_path, config, format_name, codecs, token): source
			for source, out_path in jobs
		}
		for fut in as_completed(futures):
			source = futures[fut]
			try:
				out_path = fut.result()
			except Cancelled:
				report.cancelled = True
			except Exception as e:
				logger.warning(f"{source}: {e}")
				report.failures.append((str(source), str(e)))
			else:
				report.success_count += 1
				report.outputs.append(str(out_path))

	logger.info(f"Batch done: {report.success_count} ok, {len(report.failures)} failed")
	return report


def run_batch_job(job_id: str, paths: List[str], config: FrameConfig, format_name: str, max_workers: int = 0) -> None:
	try:
		write_status(job_id, {"job_id": job_id, "status": "running", "step": "Frame Images", "num_files": len(paths)})
		report = run_batch([Path(p) for p in paths], config, format_name, max_workers=max_workers)
		write_status(job_id, {
			"job_id": job_id,
			"status": "completed",
			"step": "Done",
			"format": format_name,
			**report.to_dict(),
		})
	except Exception as e:
		logger.exception(f"Batch job {job_id} failed")
		write_status(job_id, {"job_id": job_id, "status": "error", "error": str(e)})
