import os
import threading
import time

# Must be set before streamwatch reads its settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_MODE"] = "stub"
os.environ["STUB_USER_ID"] = "user-1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from streamwatch.api.deps import get_session_orchestrator
from streamwatch.db.base import Base
from streamwatch.db.session import get_db
from streamwatch.main import app
from streamwatch.models import surveillance  # noqa: F401
from streamwatch.schemas.surveillance import AssessmentResult
from streamwatch.services.orchestrator import SessionOrchestrator

MEDIA_URL = "https://media.example/stream.m3u8"


def wait_for(predicate, timeout=2.0):
	deadline = time.monotonic() + timeout
	while time.monotonic() < deadline:
		if predicate():
			return True
		time.sleep(0.01)
	return predicate()


class StubResolver:
	def __init__(self, url=MEDIA_URL, error=None):
		self.url = url
		self.error = error
		self.calls = []

	def resolve(self, source):
		self.calls.append(source)
		if self.error is not None:
			raise self.error
		return self.url


class FakeHandle:
	def __init__(self):
		self.exitcode = None
		self.stopped = threading.Event()
		self._done = threading.Event()

	def join(self, timeout=None):
		self._done.wait(timeout)

	def is_alive(self):
		return not self._done.is_set()

	def finish(self, exitcode=0):
		self.exitcode = exitcode
		self._done.set()

	def stop(self, grace=120.0):
		self.stopped.set()
		self.finish(0)


class StubSpawner:
	def __init__(self, error=None):
		self.error = error
		self.contexts = []
		self.handles = []

	def spawn(self, context):
		self.contexts.append(context)
		if self.error is not None:
			raise self.error
		handle = FakeHandle()
		self.handles.append(handle)
		return handle


class StubExtractor:
	"""Writes a placeholder frame, or raises the configured error."""

	def __init__(self, error=None, payload=b"\xff\xd8\xff\xe0fake-jpeg"):
		self.error = error
		self.payload = payload
		self.paths = []

	def capture_one_frame(self, media_url, output_path, timeout=None):
		self.paths.append(output_path)
		if self.error is not None:
			raise self.error
		output_path.write_bytes(self.payload)


class StubAssessor:
	def __init__(self, result=None):
		self.result = result or AssessmentResult(
			anomaly_detected=True, description="person near door", severity="medium"
		)
		self.calls = []

	def assess(self, frame_bytes, prompt):
		self.calls.append((frame_bytes, prompt))
		return self.result


@pytest.fixture
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
	yield factory
	Base.metadata.drop_all(bind=engine)
	engine.dispose()


@pytest.fixture
def db(session_factory):
	with session_factory() as session:
		yield session


@pytest.fixture
def resolver():
	return StubResolver()


@pytest.fixture
def spawner():
	return StubSpawner()


@pytest.fixture
def orchestrator(resolver, spawner, session_factory):
	return SessionOrchestrator(
		resolver=resolver,
		spawner=spawner,
		session_factory=session_factory,
		stop_grace=0.1,
	)


@pytest.fixture
def client(session_factory, orchestrator):
	def override_get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_session_orchestrator] = lambda: orchestrator
	yield TestClient(app)
	app.dependency_overrides.clear()
