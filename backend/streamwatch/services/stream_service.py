from __future__ import annotations

import logging
import subprocess
from functools import lru_cache

from streamwatch.core.config import get_settings
from streamwatch.core.errors import ResolutionError

logger = logging.getLogger(__name__)


def _tail(text: str | None, limit: int = 500) -> str:
	text = (text or "").strip()
	return text[-limit:]


class StreamResolver:
	"""Turns a public video page URL into a direct, time-limited media URL via yt-dlp."""

	def __init__(self, binary: str = "yt-dlp", timeout: float = 30.0) -> None:
		self.binary = binary
		self.timeout = timeout

	def resolve(self, source: str) -> str:
		# Single attempt; retrying is left to the caller.
		command = [self.binary, "-g", source]
		try:
			completed = subprocess.run(
				command,
				capture_output=True,
				text=True,
				timeout=self.timeout,
				check=False,
			)
		except subprocess.TimeoutExpired as exc:
			raise ResolutionError(
				ResolutionError.TIMEOUT,
				f"{self.binary} did not finish within {self.timeout:g}s",
			) from exc
		except OSError as exc:
			raise ResolutionError(
				ResolutionError.EXTRACTION_FAILED, f"could not run {self.binary}: {exc}"
			) from exc

		if completed.returncode != 0:
			raise ResolutionError(
				ResolutionError.EXTRACTION_FAILED,
				f"{self.binary} exited with {completed.returncode}: {_tail(completed.stderr)}",
			)

		urls = [line.strip() for line in (completed.stdout or "").splitlines() if line.strip()]
		if not urls:
			raise ResolutionError(ResolutionError.NO_STREAM_FOUND, "No stream URL found")

		logger.debug("Resolved %s to a media URL (%d candidates)", source, len(urls))
		return urls[0]


@lru_cache
def get_stream_resolver() -> StreamResolver:
	settings = get_settings()
	return StreamResolver(
		binary=settings.YTDLP_BINARY,
		timeout=settings.STREAM_RESOLVE_TIMEOUT_SECONDS,
	)
