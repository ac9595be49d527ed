import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamwatch.core.errors import PersistenceError, SessionNotFound
from streamwatch.models.surveillance import (
	SESSION_FAILED,
	SESSION_RUNNING,
	SESSION_STOPPED,
	SurveillanceSession,
)
from streamwatch.repositories.session_repo import SurveillanceSessionRepository

logger = logging.getLogger(__name__)


class SurveillanceSessionService:
	def __init__(self) -> None:
		self.repo = SurveillanceSessionRepository()

	def create_session(
		self,
		db: Session,
		user_id: str,
		youtube_url: str,
		interval: int,
		prompt: str,
	) -> SurveillanceSession:
		session = SurveillanceSession(
			user_id=user_id,
			youtube_url=youtube_url,
			interval=interval,
			prompt=prompt,
			status=SESSION_RUNNING,
		)
		try:
			return self.repo.create(db, session)
		except SQLAlchemyError as exc:
			db.rollback()
			raise PersistenceError(f"Could not create surveillance session: {exc}") from exc

	def get_user_session(
		self, db: Session, user_id: str, session_id: str
	) -> SurveillanceSession:
		session = self.repo.get(db, session_id)
		if session is None or session.user_id != user_id:
			raise SessionNotFound(session_id)
		return session

	def list_sessions(
		self, db: Session, user_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceSession]:
		return self.repo.list_by_user(db, user_id, skip=skip, limit=limit)

	def list_running(self, db: Session) -> List[SurveillanceSession]:
		try:
			return self.repo.list_by_status(db, SESSION_RUNNING)
		except SQLAlchemyError as exc:
			db.rollback()
			raise PersistenceError(f"Could not list running sessions: {exc}") from exc

	def is_running(self, db: Session, session_id: str) -> bool:
		try:
			session = self.repo.get(db, session_id)
		except SQLAlchemyError as exc:
			db.rollback()
			raise PersistenceError(f"Could not read session {session_id}: {exc}") from exc
		return session is not None and session.status == SESSION_RUNNING

	def mark_stopped(self, db: Session, session_id: str) -> bool:
		return self._transition(db, session_id, SESSION_STOPPED)

	def mark_failed(self, db: Session, session_id: str) -> bool:
		return self._transition(db, session_id, SESSION_FAILED)

	def _transition(self, db: Session, session_id: str, status: str) -> bool:
		try:
			changed = self.repo.transition_status(
				db, session_id, status, stopped_at=datetime.now(timezone.utc)
			)
		except SQLAlchemyError as exc:
			db.rollback()
			raise PersistenceError(
				f"Could not mark session {session_id} as {status}: {exc}"
			) from exc
		if changed:
			logger.info("Session %s is now %s", session_id, status)
		return changed
