from typing import List

from sqlalchemy.orm import Session

from streamwatch.models.surveillance import SurveillanceLog


class SurveillanceLogRepository:
	def list_by_session(
		self, db: Session, session_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceLog]:
		return (
			db.query(SurveillanceLog)
			.filter(SurveillanceLog.session_id == session_id)
			.order_by(SurveillanceLog.id)
			.offset(skip)
			.limit(limit)
			.all()
		)

	def list_by_user(
		self, db: Session, user_id: str, skip: int = 0, limit: int = 100
	) -> List[SurveillanceLog]:
		return (
			db.query(SurveillanceLog)
			.filter(SurveillanceLog.user_id == user_id)
			.order_by(SurveillanceLog.id)
			.offset(skip)
			.limit(limit)
			.all()
		)

	def create(self, db: Session, log: SurveillanceLog) -> SurveillanceLog:
		db.add(log)
		db.commit()
		db.refresh(log)
		return log
