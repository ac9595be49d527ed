from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from streamwatch.models.surveillance import SESSION_RUNNING, SurveillanceSession


class SurveillanceSessionRepository:
	def get(self, db: Session, session_id: str) -> SurveillanceSession | None:
		return (
			db.query(SurveillanceSession)
			.filter(SurveillanceSession.id == session_id)
			.first()
		)

	def list_by_user(
		self, db: Session, user_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceSession]:
		return (
			db.query(SurveillanceSession)
			.filter(SurveillanceSession.user_id == user_id)
			.order_by(SurveillanceSession.started_at.desc())
			.offset(skip)
			.limit(limit)
			.all()
		)

	def list_by_status(self, db: Session, status: str) -> List[SurveillanceSession]:
		return (
			db.query(SurveillanceSession)
			.filter(SurveillanceSession.status == status)
			.order_by(SurveillanceSession.started_at)
			.all()
		)

	def create(self, db: Session, session: SurveillanceSession) -> SurveillanceSession:
		db.add(session)
		db.commit()
		db.refresh(session)
		return session

	def transition_status(
		self, db: Session, session_id: str, status: str, stopped_at: datetime
	) -> bool:
		"""Move a running session to a terminal status; False if it was not running."""
		updated = (
			db.query(SurveillanceSession)
			.filter(
				SurveillanceSession.id == session_id,
				SurveillanceSession.status == SESSION_RUNNING,
			)
			.update(
				{
					SurveillanceSession.status: status,
					SurveillanceSession.stopped_at: stopped_at,
				},
				synchronize_session=False,
			)
		)
		db.commit()
		return updated == 1
