from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from frameseal.config import settings

JOBS_DIR = Path(settings.jobs.dir)


def write_status(job_id: str, data: Dict[str, Any]) -> None:
	JOBS_DIR.mkdir(parents=True, exist_ok=True)
	status_path = JOBS_DIR / f"{job_id}.json"
	tmp_path = status_path.with_suffix(".json.tmp")
	with tmp_path.open("w", encoding="utf-8") as f:
		json.dump(data, f, indent=2)
	tmp_path.replace(status_path)


def read_status(job_id: str) -> Dict[str, Any]:
	if Path(job_id).name != job_id:
		return {"job_id": job_id, "status": "unknown"}
	status_path = JOBS_DIR / f"{job_id}.json"
	if not status_path.exists():
		return {"job_id": job_id, "status": "unknown"}
	with status_path.open("r", encoding="utf-8") as f:
		return json.load(f)
