from __future__ import annotations

import itertools
import logging
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from streamwatch.core.config import get_settings
from streamwatch.core.errors import CaptureError, PersistenceError
from streamwatch.core.logging import configure_logging
from streamwatch.db.session import SessionLocal
from streamwatch.models.surveillance import SurveillanceLog
from streamwatch.services.assessment_service import get_assessment_client
from streamwatch.services.frame_service import get_frame_extractor
from streamwatch.services.log_service import SurveillanceLogService
from streamwatch.services.session_service import SurveillanceSessionService
from streamwatch.workers.context import WorkerContext

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStats:
	ticks: int = 0
	completed: int = 0
	skipped: int = 0
	capture_failures: int = 0
	errors: int = 0


class CaptureScheduler:
	"""Periodic capture -> assess -> log driver for a single session.

	Ticks fire on a fixed grid of ``context.interval`` seconds. Each accepted
	tick runs its cycle on a short-lived thread so the timer keeps its period;
	a tick that fires while a cycle is still in flight is dropped rather than
	queued, so at most one cycle per session exists at any time.
	"""

	def __init__(
		self,
		context: WorkerContext,
		extractor,
		assessor,
		frames_dir: Path,
		stop_event,
		session_factory=SessionLocal,
		sessions: SurveillanceSessionService | None = None,
		logs: SurveillanceLogService | None = None,
		capture_timeout: float | None = None,
		drain_timeout: float | None = None,
	) -> None:
		self.context = context
		self.extractor = extractor
		self.assessor = assessor
		self.frames_dir = Path(frames_dir)
		self.capture_timeout = capture_timeout
		self.drain_timeout = drain_timeout
		self.sessions = sessions or SurveillanceSessionService()
		self.logs = logs or SurveillanceLogService()
		self.stats = SchedulerStats()
		self.failed = False
		self._stop_event = stop_event
		self._session_factory = session_factory
		self._in_flight = threading.Lock()
		self._cycle_thread: threading.Thread | None = None
		self._sequence = itertools.count(1)

	@property
	def in_flight(self) -> bool:
		return self._in_flight.locked()

	def run(self) -> None:
		interval = self.context.interval
		logger.info(
			"Capturing session %s every %ss", self.context.session_id, interval
		)
		next_tick = time.monotonic()
		while not self._stop_event.is_set():
			if not self.session_active():
				logger.info(
					"Session %s is no longer running, ending capture", self.context.session_id
				)
				break
			self.tick()
			next_tick += interval
			now = time.monotonic()
			while next_tick <= now:
				next_tick += interval
			self._stop_event.wait(next_tick - now)

		if not self.wait_idle(self.drain_timeout):
			logger.warning(
				"Session %s: stopping with a capture cycle still in flight",
				self.context.session_id,
			)
		logger.info(
			"Session %s capture loop ended: %s", self.context.session_id, self.stats
		)

	def session_active(self) -> bool:
		"""Re-read the persisted status; the API may have ended the session."""
		try:
			with self._session_factory() as db:
				return self.sessions.is_running(db, self.context.session_id)
		except PersistenceError as exc:
			logger.warning(
				"Session %s: could not read status, capturing anyway: %s",
				self.context.session_id,
				exc,
			)
			return True

	def tick(self) -> bool:
		"""Start one cycle unless another is in flight; returns whether it started."""
		self.stats.ticks += 1
		if not self._in_flight.acquire(blocking=False):
			self.stats.skipped += 1
			logger.warning(
				"Session %s: previous capture still in flight, dropping tick %d",
				self.context.session_id,
				self.stats.ticks,
			)
			return False

		thread = threading.Thread(
			target=self._run_guarded,
			name=f"cycle-{self.context.session_id[:8]}-{self.stats.ticks}",
			daemon=True,
		)
		self._cycle_thread = thread
		try:
			thread.start()
		except RuntimeError:
			self._in_flight.release()
			raise
		return True

	def wait_idle(self, timeout: float | None = None) -> bool:
		thread = self._cycle_thread
		if thread is not None:
			thread.join(timeout)
		return not self.in_flight

	def next_frame_path(self) -> Path:
		return self.frames_dir / f"frame_{next(self._sequence):06d}_{time.time_ns()}.jpg"

	def run_cycle(self) -> SurveillanceLog | None:
		"""One tick's work. Returns the written log, or None if the tick was abandoned."""
		session_id = self.context.session_id
		output_path = self.next_frame_path()
		try:
			self.extractor.capture_one_frame(
				self.context.stream_url, output_path, timeout=self.capture_timeout
			)
			frame_bytes = output_path.read_bytes()
		except CaptureError as exc:
			self.stats.capture_failures += 1
			logger.warning("Session %s: frame capture failed, skipping tick: %s", session_id, exc)
			return None
		except OSError as exc:
			self.stats.capture_failures += 1
			logger.warning("Session %s: captured frame unreadable, skipping tick: %s", session_id, exc)
			return None

		result = self.assessor.assess(frame_bytes, self.context.prompt)
		if result.anomaly_detected:
			logger.warning(
				"Session %s: ANOMALY (%s): %s", session_id, result.severity, result.description
			)

		with self._session_factory() as db:
			log = self.logs.append_log(
				db,
				session_id=session_id,
				user_id=self.context.user_id,
				image_path=str(output_path),
				result=result,
			)
		self.stats.completed += 1
		logger.debug("Session %s: frame %s logged as %s", session_id, output_path.name, log.id)
		return log

	def _run_guarded(self) -> None:
		try:
			self.run_cycle()
		except PersistenceError as exc:
			self._fail(exc)
		except Exception:
			self.stats.errors += 1
			logger.exception(
				"Session %s: capture cycle crashed, tick abandoned", self.context.session_id
			)
		finally:
			self._in_flight.release()

	def _fail(self, exc: Exception) -> None:
		session_id = self.context.session_id
		self.failed = True
		logger.error("Session %s: %s; stopping capture", session_id, exc)
		try:
			with self._session_factory() as db:
				self.sessions.mark_failed(db, session_id)
		except PersistenceError:
			logger.exception("Session %s: could not record failed status", session_id)
		self._stop_event.set()


def run_capture_worker(context: WorkerContext, stop_event) -> None:
	"""Entry point of a capture process; exits non-zero when the session failed."""
	configure_logging()
	settings = get_settings()
	logger.info("Worker started for session %s", context.session_id)

	try:
		with SessionLocal() as db:
			db.execute(text("SELECT 1"))
	except SQLAlchemyError:
		logger.exception("Session %s: database unavailable, worker exiting", context.session_id)
		sys.exit(1)

	frames_dir = Path(settings.FRAMES_DIR) / context.session_id
	frames_dir.mkdir(parents=True, exist_ok=True)

	scheduler = CaptureScheduler(
		context,
		extractor=get_frame_extractor(),
		assessor=get_assessment_client(),
		frames_dir=frames_dir,
		stop_event=stop_event,
		session_factory=SessionLocal,
		capture_timeout=settings.CAPTURE_TIMEOUT_SECONDS,
		# An in-flight cycle may still spend a full inference call after capture.
		drain_timeout=settings.CAPTURE_TIMEOUT_SECONDS + settings.INFERENCE_TIMEOUT_SECONDS,
	)
	scheduler.run()
	if scheduler.failed:
		sys.exit(1)
