from __future__ import annotations

import threading
from typing import Optional


class FrameSealError(Exception):
	"""Base class for framing failures."""


class ConfigError(FrameSealError, ValueError):
	"""Invalid configuration; raised before any image is touched."""

	def __init__(self, field: str, message: str) -> None:
		super().__init__(f"{field}: {message}")
		self.field = field
		self.message = message


class MetricError(FrameSealError):
	"""The font cannot be sized to the requested text height."""


class Cancelled(Exception):
	"""Cooperative cancellation; not an error, never reported."""


class CancelToken:
	def __init__(self) -> None:
		self._event = threading.Event()

	def cancel(self) -> None:
		self._event.set()

	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	def raise_if_cancelled(self) -> None:
		if self._event.is_set():
			raise Cancelled()


def check_cancelled(token: Optional[CancelToken]) -> None:
	if token is not None:
		token.raise_if_cancelled()
