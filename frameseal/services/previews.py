from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from io import BytesIO
from typing import Callable, Optional, TypeVar

from PIL import Image

from frameseal.services.compositor import compose_frame
from frameseal.services.errors import CancelToken, Cancelled, check_cancelled
from frameseal.services.frame_config import FrameConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEBOUNCE_S = 0.128


def make_thumbnail(img: Image.Image, max_side: int) -> Image.Image:
	thumb = img.copy()
	thumb.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
	return thumb


def render_preview(img: Image.Image, config: FrameConfig, max_side: int = 1024, token: Optional[CancelToken] = None) -> bytes:
	"""Frame a thumbnail of ``img`` and return it PNG-encoded, ready for display."""
	check_cancelled(token)
	thumb = make_thumbnail(img, max_side)
	framed = compose_frame(thumb, config, token)
	check_cancelled(token)
	buf = BytesIO()
	framed.save(buf, format="PNG")
	return buf.getvalue()


class PreviewScheduler:
	"""
	Single-flight, debounced runner for preview jobs.

	Each submit() cancels the pending timer and the in-flight job's token,
	then starts a new timer. Only the latest job can deliver a result; a
	superseded future is cancelled, or fails with Cancelled if it had started.
	"""

	def __init__(self, delay: float = DEFAULT_DEBOUNCE_S) -> None:
		self.delay = delay
		self._lock = threading.Lock()
		self._timer: Optional[threading.Timer] = None
		self._token: Optional[CancelToken] = None
		self._future: Optional[Future] = None

	def submit(self, job: Callable[[CancelToken], T]) -> "Future[T]":
		token = CancelToken()
		future: "Future[T]" = Future()
		with self._lock:
			self._supersede()
			timer = threading.Timer(self.delay, self._run, args=(job, token, future))
			timer.daemon = True
			self._timer, self._token, self._future = timer, token, future
			timer.start()
		return future

	def cancel(self) -> None:
		with self._lock:
			self._supersede()
			self._timer = self._token = self._future = None

	def _supersede(self) -> None:
		if self._timer is not None:
			self._timer.cancel()
		if self._token is not None:
			self._token.cancel()
		if self._future is not None and self._future.cancel():
			logger.debug("Pending preview superseded")

	def _run(self, job: Callable[[CancelToken], T], token: CancelToken, future: "Future[T]") -> None:
		if not future.set_running_or_notify_cancel():
			return
		try:
			result = job(token)
			token.raise_if_cancelled()
		except Cancelled as e:
			logger.debug("In-flight preview superseded")
			future.set_exception(e)
		except BaseException as e:
			future.set_exception(e)
		else:
			future.set_result(result)
