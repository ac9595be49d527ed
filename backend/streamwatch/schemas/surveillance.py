from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


Severity = Literal["low", "medium", "high"]


class AssessmentResult(BaseModel):
	"""Structured verdict for one frame, as returned by the inference service."""

	model_config = ConfigDict(populate_by_name=True, frozen=True)

	anomaly_detected: bool = Field(alias="anomalyDetected")
	description: str
	severity: Severity

	@classmethod
	def safe_default(cls, reason: str) -> "AssessmentResult":
		return cls(anomaly_detected=False, description=reason, severity="low")

	def to_json(self) -> str:
		return self.model_dump_json(by_alias=True)


class SurveillanceStartRequest(BaseModel):
	# Raw JSON values; presence and types are checked by the orchestrator so
	# that every bad input gets the same 400 response shape.
	model_config = ConfigDict(populate_by_name=True)

	youtube_url: Any = Field(default=None, alias="youtubeUrl")
	interval: Any = None
	prompt: Any = None


class SurveillanceStartResponse(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	success: bool = True
	message: str = "Surveillance Started"
	session_id: str = Field(serialization_alias="sessionId")


class SurveillanceErrorResponse(BaseModel):
	success: bool = False
	message: str


class SurveillanceSessionRead(BaseModel):
	id: str
	user_id: str
	youtube_url: str
	interval: int
	prompt: str
	status: str
	started_at: datetime | None = None
	stopped_at: datetime | None = None
	created_at: datetime | None = None

	model_config = ConfigDict(from_attributes=True)


class SurveillanceLogRead(BaseModel):
	id: int
	session_id: str
	user_id: str
	image_path: str
	ai_response: str
	snippet: str | None = None
	created_at: datetime | None = None

	model_config = ConfigDict(from_attributes=True)
