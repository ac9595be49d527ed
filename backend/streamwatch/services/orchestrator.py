from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Any, List

from sqlalchemy.orm import Session

from streamwatch.core.config import get_settings
from streamwatch.core.errors import (
	PersistenceError,
	ResolutionError,
	StartError,
	ValidationError,
)
from streamwatch.db.session import SessionLocal
from streamwatch.models.surveillance import SurveillanceSession
from streamwatch.services.session_service import SurveillanceSessionService
from streamwatch.services.stream_service import get_stream_resolver
from streamwatch.workers.context import WorkerContext
from streamwatch.workers.registry import WorkerRegistry
from streamwatch.workers.spawner import ProcessWorkerSpawner

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "All fields are required"
INVALID_INTERVAL_MESSAGE = "Interval must be a positive integer"


def _present(value: Any) -> bool:
	return isinstance(value, str) and bool(value.strip())


def validate_start_request(source: Any, interval: Any, prompt: Any) -> int:
	"""Check start inputs without touching any I/O; returns the interval as an int."""
	if not _present(source) or interval is None or not _present(prompt):
		raise ValidationError(MISSING_FIELDS_MESSAGE)
	if isinstance(interval, bool) or not isinstance(interval, (int, float)):
		raise ValidationError(INVALID_INTERVAL_MESSAGE)
	if isinstance(interval, float) and not interval.is_integer():
		raise ValidationError(INVALID_INTERVAL_MESSAGE)
	if interval < 1:
		raise ValidationError(INVALID_INTERVAL_MESSAGE)
	return int(interval)


class SessionOrchestrator:
	def __init__(
		self,
		resolver,
		spawner,
		session_factory=SessionLocal,
		sessions: SurveillanceSessionService | None = None,
		registry: WorkerRegistry | None = None,
		stop_grace: float = 120.0,
	) -> None:
		self.resolver = resolver
		self.spawner = spawner
		self.sessions = sessions or SurveillanceSessionService()
		self.registry = registry or WorkerRegistry()
		self.stop_grace = stop_grace
		self._session_factory = session_factory

	def start_session(
		self, db: Session, user_id: str, source: Any, interval: Any, prompt: Any
	) -> str:
		"""Resolve the stream, record the session and launch its capture worker.

		Returns as soon as the worker is launched. Nothing is persisted unless
		the stream resolves.
		"""
		interval = validate_start_request(source, interval, prompt)
		source = source.strip()
		prompt = prompt.strip()

		try:
			stream_url = self.resolver.resolve(source)
		except ResolutionError as exc:
			logger.error("Could not resolve stream for %s (%s): %s", source, exc.kind, exc.message)
			raise StartError(exc) from exc

		try:
			session = self.sessions.create_session(
				db, user_id=user_id, youtube_url=source, interval=interval, prompt=prompt
			)
		except PersistenceError as exc:
			logger.error("Could not record session for %s: %s", source, exc)
			raise StartError(exc) from exc

		context = WorkerContext(
			session_id=session.id,
			stream_url=stream_url,
			interval=interval,
			prompt=prompt,
			user_id=user_id,
		)
		try:
			handle = self.spawner.spawn(context)
		except Exception as exc:
			logger.exception("Could not spawn capture worker for session %s", session.id)
			try:
				self.sessions.mark_failed(db, session.id)
			except PersistenceError:
				logger.exception("Session %s: could not record failed status", session.id)
			raise StartError(exc) from exc

		self.registry.register(session.id, handle)
		threading.Thread(
			target=self._watch,
			args=(session.id, handle),
			name=f"watch-{session.id[:8]}",
			daemon=True,
		).start()
		logger.info("Surveillance started for session %s (every %ss)", session.id, interval)
		return session.id

	def stop_session(self, db: Session, user_id: str, session_id: str) -> SurveillanceSession:
		session = self.sessions.get_user_session(db, user_id, session_id)
		if self.sessions.mark_stopped(db, session_id):
			db.refresh(session)

		handle = self.registry.pop(session_id)
		if handle is not None:
			threading.Thread(
				target=handle.stop,
				args=(self.stop_grace,),
				name=f"stop-{session_id[:8]}",
				daemon=True,
			).start()
		return session

	def shutdown(self) -> None:
		"""Stop every worker this process launched and mark their sessions stopped."""
		stoppers = []
		for session_id, handle in self.registry.drain():
			try:
				with self._session_factory() as db:
					self.sessions.mark_stopped(db, session_id)
			except PersistenceError:
				logger.exception("Session %s: could not record stopped status", session_id)
			stopper = threading.Thread(
				target=handle.stop,
				args=(self.stop_grace,),
				name=f"stop-{session_id[:8]}",
				daemon=True,
			)
			stopper.start()
			stoppers.append(stopper)
		for stopper in stoppers:
			stopper.join()

	def fail_orphaned_sessions(self) -> List[str]:
		"""Mark failed every running session with no worker in this process.

		Run at startup: sessions left running by a previous API process have
		no handle here, so nothing would ever record how they ended. Their
		workers, if still alive, see the terminal status and exit.
		"""
		with self._session_factory() as db:
			orphans = [
				session.id
				for session in self.sessions.list_running(db)
				if session.id not in self.registry
			]
			for session_id in orphans:
				if self.sessions.mark_failed(db, session_id):
					logger.warning("Session %s had no live worker, marked failed", session_id)
		return orphans

	def _watch(self, session_id: str, handle) -> None:
		handle.join()
		self.registry.discard(session_id, handle)
		exitcode = handle.exitcode
		if not exitcode:
			logger.info("Worker for session %s exited", session_id)
			return

		# A worker terminated after a stop request also exits non-zero; the
		# session is already stopped then and mark_failed leaves it alone.
		try:
			with self._session_factory() as db:
				failed = self.sessions.mark_failed(db, session_id)
		except PersistenceError:
			logger.exception("Session %s: could not record failed status", session_id)
			return
		if failed:
			logger.error("Worker for session %s died with exit code %s", session_id, exitcode)
		else:
			logger.info("Worker for session %s exited with code %s", session_id, exitcode)


@lru_cache
def get_orchestrator() -> SessionOrchestrator:
	settings = get_settings()
	return SessionOrchestrator(
		resolver=get_stream_resolver(),
		spawner=ProcessWorkerSpawner(),
		stop_grace=settings.WORKER_STOP_GRACE_SECONDS,
	)
