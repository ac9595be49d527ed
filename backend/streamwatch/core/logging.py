import logging

from streamwatch.core.config import get_settings


def configure_logging() -> None:
	"""Set up root logging for the API process or a capture worker process."""
	settings = get_settings()
	logging.basicConfig(
		level=settings.LOG_LEVEL,
		format="%(asctime)s %(levelname)s [%(processName)s] %(name)s: %(message)s",
	)
