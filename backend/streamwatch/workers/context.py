from dataclasses import dataclass


@dataclass(frozen=True)
class WorkerContext:
	"""Everything a capture worker needs; pickled across the process boundary."""

	session_id: str
	stream_url: str
	interval: int
	prompt: str
	user_id: str
