from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streamwatch.core.errors import PersistenceError
from streamwatch.models.surveillance import SurveillanceLog
from streamwatch.repositories.log_repo import SurveillanceLogRepository
from streamwatch.schemas.surveillance import AssessmentResult


class SurveillanceLogService:
	"""Append-only store for per-tick assessment records."""

	def __init__(self) -> None:
		self.repo = SurveillanceLogRepository()

	def append_log(
		self,
		db: Session,
		session_id: str,
		user_id: str,
		image_path: str,
		result: AssessmentResult,
	) -> SurveillanceLog:
		log = SurveillanceLog(
			session_id=session_id,
			user_id=user_id,
			image_path=image_path,
			ai_response=result.to_json(),
			snippet=result.description,
		)
		try:
			return self.repo.create(db, log)
		except SQLAlchemyError as exc:
			db.rollback()
			raise PersistenceError(
				f"Could not write surveillance log for session {session_id}: {exc}"
			) from exc

	def list_session_logs(
		self, db: Session, session_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceLog]:
		return self.repo.list_by_session(db, session_id, skip=skip, limit=limit)

	def list_user_logs(
		self, db: Session, user_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceLog]:
		return self.repo.list_by_user(db, user_id, skip=skip, limit=limit)
