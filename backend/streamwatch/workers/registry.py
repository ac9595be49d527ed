import threading
from typing import Any, Dict, List, Tuple


class WorkerRegistry:
	"""Maps session id to the handle of the worker running it."""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._handles: Dict[str, Any] = {}

	def register(self, session_id: str, handle: Any) -> None:
		with self._lock:
			self._handles[session_id] = handle

	def pop(self, session_id: str) -> Any | None:
		with self._lock:
			return self._handles.pop(session_id, None)

	def discard(self, session_id: str, handle: Any) -> None:
		with self._lock:
			if self._handles.get(session_id) is handle:
				del self._handles[session_id]

	def drain(self) -> List[Tuple[str, Any]]:
		with self._lock:
			items = list(self._handles.items())
			self._handles.clear()
		return items

	def __len__(self) -> int:
		with self._lock:
			return len(self._handles)

	def __contains__(self, session_id: object) -> bool:
		with self._lock:
			return session_id in self._handles
