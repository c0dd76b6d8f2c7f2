from __future__ import annotations

import uuid
from collections import OrderedDict
from concurrent.futures import CancelledError, Future
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from PIL import UnidentifiedImageError
from pydantic import BaseModel, Field, ValidationError

from frameseal.config import FrameSettings, settings
from frameseal.services.batch_pipeline import run_batch_job
from frameseal.services.codecs import registry
from frameseal.services.errors import Cancelled, MetricError
from frameseal.services.image_utils import load_image
from frameseal.services.metadata import MetadataKey
from frameseal.services.previews import PreviewScheduler, render_preview
from frameseal.services.status_store import read_status, write_status


router = APIRouter(prefix="/frames", tags=["frames"])

# One debounced scheduler per preview session (e.g. per open editor tab),
# least recently used first.
MAX_PREVIEW_SESSIONS = 64
_schedulers: "OrderedDict[str, PreviewScheduler]" = OrderedDict()


class BatchRequest(BaseModel):
	paths: List[str] = Field(..., min_length=1, description="Server-side image paths")
	frame: Optional[FrameSettings] = None
	output_format: Optional[str] = None
	max_workers: Optional[int] = Field(default=None, ge=0)


def _slugify(text: str) -> str:
	return "".join(ch if (ch.isalnum() or ch in ("-", "_")) else "-" for ch in text).strip("-_").lower()


def _scheduler_for(session: str) -> PreviewScheduler:
	scheduler = _schedulers.get(session)
	if scheduler is None:
		scheduler = PreviewScheduler(settings.preview.debounce_ms / 1000.0)
		_schedulers[session] = scheduler
	_schedulers.move_to_end(session)
	while len(_schedulers) > MAX_PREVIEW_SESSIONS:
		_, evicted = _schedulers.popitem(last=False)
		evicted.cancel()
	return scheduler


def _server_frame(frame_settings: FrameSettings) -> FrameSettings:
	"""Clients may not point the server at local files; the icon always comes from server config."""
	return frame_settings.model_copy(update={"icon_path": settings.frame.icon_path})


def _wait_preview(future: Future) -> Optional[bytes]:
	try:
		return future.result()
	except (Cancelled, CancelledError):
		return None


@router.get("/formats", summary="List output formats")
def formats():
	return {"formats": registry.list_formats(), "default": settings.output.format}


@router.get("/fields", summary="List metadata field keys")
def fields():
	return {"keys": [k.value for k in MetadataKey]}


@router.post("/preview", summary="Render a framed preview of one image")
async def preview(
	file: UploadFile = File(...),
	frame: str = Form("{}"),
	session: str = Form("default"),
):
	try:
		frame_settings = FrameSettings.model_validate_json(frame or "{}")
	except ValidationError as e:
		raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e
	config = _server_frame(frame_settings).to_frame_config()
	data = await file.read()
	try:
		img = load_image(BytesIO(data))
	except (UnidentifiedImageError, OSError) as e:
		raise HTTPException(status_code=400, detail=f"Unreadable image: {e}") from e

	max_side = settings.preview.max_side
	future = _scheduler_for(session).submit(lambda token: render_preview(img, config, max_side, token))
	try:
		png = await run_in_threadpool(_wait_preview, future)
	except MetricError as e:
		raise HTTPException(status_code=422, detail=str(e)) from e
	if png is None:
		# Superseded by a newer request in the same session.
		return Response(status_code=204)
	return Response(content=png, media_type="image/png")


@router.post("/batch", summary="Frame images on disk in the background")
def batch(request: BatchRequest, background_tasks: BackgroundTasks):
	frame_settings = _server_frame(request.frame) if request.frame else settings.frame
	config = frame_settings.to_frame_config()
	format_name = request.output_format or settings.output.format
	registry.get(format_name)
	max_workers = request.max_workers if request.max_workers is not None else settings.batch.max_workers

	# Human-readable job_id: "<first_filename_stem>_<ddmmyyyy>_<short id>"
	first_stem = _slugify(Path(request.paths[0]).stem) or "job"
	date_str = datetime.now().strftime("%d%m%Y")
	job_id = f"{first_stem}_{date_str}_{uuid.uuid4().hex[:6]}"
	write_status(job_id, {"job_id": job_id, "status": "queued", "step": "Queued", "num_files": len(request.paths)})
	background_tasks.add_task(run_batch_job, job_id, request.paths, config, format_name, max_workers)
	return {
		"job_id": job_id,
		"status": "queued",
		"format": format_name,
		"num_files": len(request.paths),
		"status_endpoint": f"/frames/status/{job_id}",
	}


@router.get("/status/{job_id}", summary="Get batch job status")
def status(job_id: str):
	return read_status(job_id)
