from __future__ import annotations

import base64
import json
import logging
from functools import lru_cache
from typing import Any

from openai import OpenAI
from pydantic import ValidationError as SchemaValidationError

from streamwatch.core.config import get_settings
from streamwatch.core.errors import AssessmentFailure
from streamwatch.schemas.surveillance import AssessmentResult

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("anomalyDetected", "description", "severity")

INSTRUCTION_TEMPLATE = """You are a surveillance assistant detecting anomalies in a camera frame.

User instructions:
{prompt}

Carefully analyze the provided frame.

Respond STRICTLY in JSON format with exactly these fields:

{{
  "anomalyDetected": true or false,
  "description": "Short explanation of what is happening in the image",
  "severity": "low" | "medium" | "high"
}}
"""

MISSING_INPUT = "Frame and prompt are required for assessment"
REQUEST_FAILED = "AI request failed"
PARSE_FAILED = "AI response parsing failed"
MISSING_FIELDS = "AI response missing required fields"
INVALID_FIELDS = "AI response has invalid field values"


def encode_frame(frame_bytes: bytes) -> str:
	return base64.b64encode(frame_bytes).decode("utf-8")


def build_messages(frame_bytes: bytes, prompt: str) -> list[dict[str, Any]]:
	return [
		{
			"role": "user",
			"content": [
				{"type": "text", "text": INSTRUCTION_TEMPLATE.format(prompt=prompt.strip())},
				{
					"type": "image_url",
					"image_url": {"url": f"data:image/jpeg;base64,{encode_frame(frame_bytes)}"},
				},
			],
		}
	]


def parse_assessment(content: str | None) -> AssessmentResult:
	"""Validate the model's JSON reply; raises AssessmentFailure with a short reason."""
	try:
		payload = json.loads(content or "")
	except (TypeError, ValueError) as exc:
		raise AssessmentFailure(PARSE_FAILED) from exc
	if not isinstance(payload, dict):
		raise AssessmentFailure(PARSE_FAILED)
	if any(field not in payload for field in REQUIRED_FIELDS):
		raise AssessmentFailure(MISSING_FIELDS)
	try:
		return AssessmentResult.model_validate(
			{field: payload[field] for field in REQUIRED_FIELDS}, strict=True
		)
	except SchemaValidationError as exc:
		raise AssessmentFailure(INVALID_FIELDS) from exc


class AnomalyAssessmentClient:
	"""Asks a multimodal model whether a frame matches the user's detection prompt.

	``assess`` never raises. Whenever the request fails or the reply cannot be
	trusted it returns the safe default (no anomaly, low severity) with a short
	reason as the description, so every captured frame still gets a log record.
	The underlying cause goes to the logger.
	"""

	def __init__(
		self,
		api_key: str,
		model: str = "gpt-4o-mini",
		base_url: str | None = None,
		timeout: float = 60.0,
		client: Any | None = None,
	) -> None:
		self.api_key = api_key
		self.model = model
		self.base_url = base_url or None
		self.timeout = timeout
		self._client = client

	def _get_client(self):
		if self._client is None:
			self._client = OpenAI(
				api_key=self.api_key,
				base_url=self.base_url,
				timeout=self.timeout,
			)
		return self._client

	def assess(self, frame_bytes: bytes, prompt: str) -> AssessmentResult:
		if not frame_bytes or not prompt or not prompt.strip():
			logger.warning("Skipping assessment: %s", MISSING_INPUT)
			return AssessmentResult.safe_default(MISSING_INPUT)

		try:
			response = self._get_client().chat.completions.create(
				model=self.model,
				messages=build_messages(frame_bytes, prompt),
				response_format={"type": "json_object"},
			)
		except Exception as exc:  # noqa: BLE001 - any SDK/transport failure degrades to the default
			logger.error("AI request failed: %s", exc)
			return AssessmentResult.safe_default(REQUEST_FAILED)

		try:
			content = response.choices[0].message.content
		except (AttributeError, IndexError, TypeError):
			logger.warning("AI response had no message content: %r", response)
			return AssessmentResult.safe_default(PARSE_FAILED)

		try:
			return parse_assessment(content)
		except AssessmentFailure as exc:
			logger.warning("%s; raw payload: %r", exc, content)
			return AssessmentResult.safe_default(str(exc))


@lru_cache
def get_assessment_client() -> AnomalyAssessmentClient:
	settings = get_settings()
	return AnomalyAssessmentClient(
		api_key=settings.INFERENCE_API_KEY,
		model=settings.INFERENCE_MODEL,
		base_url=settings.INFERENCE_BASE_URL or None,
		timeout=settings.INFERENCE_TIMEOUT_SECONDS,
	)
