from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[2]


def _default_sqlite_url() -> str:
	db_path = BASE_DIR / "streamwatch.db"
	return f"sqlite:///{db_path.as_posix()}"


class Settings(BaseSettings):
	model_config = SettingsConfigDict(
		env_file=str(BASE_DIR / ".env"),
		env_file_encoding="utf-8",
		extra="ignore",
	)

	PROJECT_NAME: str = "StreamWatch API"
	API_V1_STR: str = "/api/v1"
	LOG_LEVEL: str = "INFO"

	DATABASE_URL: str = _default_sqlite_url()
	FRAMES_DIR: str = str(BASE_DIR / "uploads" / "frames")

	INFERENCE_API_KEY: str = ""
	INFERENCE_BASE_URL: str = ""
	INFERENCE_MODEL: str = "gpt-4o-mini"
	INFERENCE_TIMEOUT_SECONDS: float = 60.0

	YTDLP_BINARY: str = "yt-dlp"
	STREAM_RESOLVE_TIMEOUT_SECONDS: float = 30.0

	FFMPEG_BINARY: str = "ffmpeg"
	FRAME_JPEG_QUALITY: int = 2
	CAPTURE_TIMEOUT_SECONDS: float = 45.0
	WORKER_STOP_GRACE_SECONDS: float = 120.0

	AUTH_MODE: str = "stub"
	STUB_USER_ID: str = "local-user"
	JWT_SECRET_KEY: str = ""
	JWT_ALGORITHM: str = "HS256"

	CORS_ORIGINS: List[str] = Field(
		default_factory=lambda: [
			"http://localhost:3000",
			"http://127.0.0.1:3000",
			"http://localhost:5500",
			"http://127.0.0.1:5500",
		]
	)


@lru_cache
def get_settings() -> Settings:
	return Settings()
