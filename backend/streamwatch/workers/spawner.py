from __future__ import annotations

import logging
import multiprocessing

from streamwatch.workers.context import WorkerContext
from streamwatch.workers.scheduler import run_capture_worker

logger = logging.getLogger(__name__)


class ProcessWorkerHandle:
	"""Handle on one capture process and its stop signal."""

	def __init__(self, process, stop_event) -> None:
		self.process = process
		self.stop_event = stop_event

	@property
	def pid(self) -> int | None:
		return self.process.pid

	@property
	def exitcode(self) -> int | None:
		return self.process.exitcode

	def is_alive(self) -> bool:
		return self.process.is_alive()

	def join(self, timeout: float | None = None) -> None:
		self.process.join(timeout)

	def stop(self, grace: float = 120.0, terminate_grace: float = 5.0) -> None:
		"""Ask the worker to finish its cycle, then terminate and finally kill it."""
		self.stop_event.set()
		self.process.join(grace)
		if self.process.is_alive():
			logger.warning(
				"Capture process %s did not stop within %.0fs, terminating", self.pid, grace
			)
			self.process.terminate()
			self.process.join(terminate_grace)
			if self.process.is_alive():
				logger.warning("Capture process %s ignored terminate, killing", self.pid)
				self.process.kill()
				self.process.join()


class ProcessWorkerSpawner:
	"""Runs each session's scheduler in its own OS process.

	A crash in capture or inference code then only takes down that process,
	never the API process or other sessions.
	"""

	def __init__(self, start_method: str = "spawn", target=run_capture_worker) -> None:
		self._ctx = multiprocessing.get_context(start_method)
		self._target = target

	def spawn(self, context: WorkerContext) -> ProcessWorkerHandle:
		stop_event = self._ctx.Event()
		process = self._ctx.Process(
			target=self._target,
			args=(context, stop_event),
			name=f"capture-{context.session_id[:8]}",
			daemon=True,
		)
		process.start()
		logger.info("Started capture process %s for session %s", process.pid, context.session_id)
		return ProcessWorkerHandle(process, stop_event)
