import uuid
from datetime import datetime, timezone

from sqlalchemy import (
	CheckConstraint,
	Column,
	DateTime,
	ForeignKey,
	Integer,
	String,
	Text,
	func,
)

from streamwatch.db.base import Base


SESSION_RUNNING = "running"
SESSION_STOPPED = "stopped"
SESSION_FAILED = "failed"


def _new_session_id() -> str:
	return str(uuid.uuid4())


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class SurveillanceSession(Base):
	__tablename__ = "surveillance_sessions"

	id = Column(String(36), primary_key=True, default=_new_session_id)
	user_id = Column(String, nullable=False, index=True)
	youtube_url = Column(String, nullable=False)
	interval = Column(Integer, nullable=False)
	prompt = Column(Text, nullable=False)
	status = Column(String(16), nullable=False, default=SESSION_RUNNING)
	started_at = Column(DateTime(timezone=True), default=_utcnow)
	stopped_at = Column(DateTime(timezone=True), nullable=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())
	updated_at = Column(DateTime(timezone=True), onupdate=func.now())

	__table_args__ = (
		CheckConstraint(interval >= 1, name="ck_surveillance_sessions_interval"),
	)


class SurveillanceLog(Base):
	__tablename__ = "surveillance_logs"

	id = Column(Integer, primary_key=True, index=True)
	session_id = Column(
		String(36), ForeignKey("surveillance_sessions.id"), nullable=False, index=True
	)
	user_id = Column(String, nullable=False, index=True)
	image_path = Column(String, nullable=False)
	ai_response = Column(Text, nullable=False)
	snippet = Column(Text, nullable=True)
	created_at = Column(DateTime(timezone=True), server_default=func.now())
