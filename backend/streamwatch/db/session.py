from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from streamwatch.core.config import get_settings


def _engine_kwargs(database_url: str) -> dict:
	# Capture workers write from their own threads and processes.
	if database_url.startswith("sqlite"):
		return {"connect_args": {"check_same_thread": False}}
	return {"pool_pre_ping": True}


_database_url = get_settings().DATABASE_URL
engine = create_engine(_database_url, **_engine_kwargs(_database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()
