class StreamWatchError(Exception):
	"""Base class for pipeline errors."""


class ValidationError(StreamWatchError):
	"""Start request rejected before any I/O."""


class ResolutionError(StreamWatchError):
	EXTRACTION_FAILED = "extraction_failed"
	NO_STREAM_FOUND = "no_stream_found"
	TIMEOUT = "timeout"

	def __init__(self, kind: str, message: str) -> None:
		super().__init__(f"{kind}: {message}")
		self.kind = kind
		self.message = message


class StartError(StreamWatchError):
	def __init__(self, cause: Exception) -> None:
		super().__init__(f"Failed to start surveillance: {cause}")
		self.cause = cause


class CaptureError(StreamWatchError):
	PROCESS_ERROR = "process_error"
	IO_ERROR = "io_error"

	def __init__(self, kind: str, message: str) -> None:
		super().__init__(f"{kind}: {message}")
		self.kind = kind
		self.message = message


class AssessmentFailure(StreamWatchError):
	"""Inference call or response shape failure; never leaves the client."""


class PersistenceError(StreamWatchError):
	"""A session or log record could not be written or read."""


class SessionNotFound(StreamWatchError):
	def __init__(self, session_id: str) -> None:
		super().__init__(f"Surveillance session {session_id} not found")
		self.session_id = session_id
