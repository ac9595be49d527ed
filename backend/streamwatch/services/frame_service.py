from __future__ import annotations

import subprocess
from functools import lru_cache
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from streamwatch.core.config import get_settings
from streamwatch.core.errors import CaptureError


class FrameExtractor:
	def __init__(self, binary: str = "ffmpeg", quality: int = 2) -> None:
		self.binary = binary
		self.quality = quality

	def build_command(self, media_url: str, output_path: Path) -> list[str]:
		return [
			self.binary,
			"-hide_banner",
			"-loglevel",
			"error",
			"-y",
			"-i",
			media_url,
			"-frames:v",
			"1",
			"-q:v",
			str(self.quality),
			str(output_path),
		]

	def capture_one_frame(
		self, media_url: str, output_path: Path, timeout: float | None = None
	) -> None:
		"""Write a single JPEG frame of ``media_url`` to ``output_path``.

		``timeout`` is supplied by the caller when it needs to bound the cycle;
		the extractor itself imposes none.
		"""
		output_path = Path(output_path)
		try:
			completed = subprocess.run(
				self.build_command(media_url, output_path),
				capture_output=True,
				text=True,
				timeout=timeout,
				check=False,
			)
		except subprocess.TimeoutExpired as exc:
			raise CaptureError(
				CaptureError.PROCESS_ERROR, f"{self.binary} timed out after {timeout:g}s"
			) from exc
		except OSError as exc:
			raise CaptureError(
				CaptureError.PROCESS_ERROR, f"could not run {self.binary}: {exc}"
			) from exc

		if completed.returncode != 0:
			stderr = (completed.stderr or "").strip()[-500:]
			raise CaptureError(
				CaptureError.PROCESS_ERROR,
				f"{self.binary} exited with {completed.returncode}: {stderr}",
			)

		if not output_path.is_file() or output_path.stat().st_size == 0:
			raise CaptureError(CaptureError.IO_ERROR, f"no frame written to {output_path}")

		try:
			with Image.open(output_path) as image:
				image.verify()
		except (UnidentifiedImageError, OSError) as exc:
			raise CaptureError(
				CaptureError.IO_ERROR, f"frame at {output_path} is not a readable image"
			) from exc


@lru_cache
def get_frame_extractor() -> FrameExtractor:
	settings = get_settings()
	return FrameExtractor(binary=settings.FFMPEG_BINARY, quality=settings.FRAME_JPEG_QUALITY)
