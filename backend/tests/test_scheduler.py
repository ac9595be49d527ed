import json
import threading

import pytest

from conftest import MEDIA_URL, StubAssessor, StubExtractor, wait_for
from streamwatch.core.errors import CaptureError, PersistenceError
from streamwatch.models.surveillance import SurveillanceLog, SurveillanceSession
from streamwatch.schemas.surveillance import AssessmentResult
from streamwatch.services.session_service import SurveillanceSessionService
from streamwatch.workers.context import WorkerContext
from streamwatch.workers.scheduler import CaptureScheduler


@pytest.fixture
def running_session(db):
	return SurveillanceSessionService().create_session(
		db, user_id="user-1", youtube_url="https://valid/video", interval=5, prompt="detect person"
	)


@pytest.fixture
def context(running_session):
	return WorkerContext(
		session_id=running_session.id,
		stream_url=MEDIA_URL,
		interval=5,
		prompt="detect person",
		user_id="user-1",
	)


def make_scheduler(context, session_factory, tmp_path, extractor=None, assessor=None, **kwargs):
	return CaptureScheduler(
		context,
		extractor=extractor or StubExtractor(),
		assessor=assessor or StubAssessor(),
		frames_dir=tmp_path,
		stop_event=kwargs.pop("stop_event", threading.Event()),
		session_factory=session_factory,
		**kwargs,
	)


def logs_for(session_factory, session_id):
	with session_factory() as db:
		return (
			db.query(SurveillanceLog)
			.filter(SurveillanceLog.session_id == session_id)
			.order_by(SurveillanceLog.id)
			.all()
		)


def test_cycle_writes_one_log(context, session_factory, tmp_path):
	scheduler = make_scheduler(context, session_factory, tmp_path)

	log = scheduler.run_cycle()

	logs = logs_for(session_factory, context.session_id)
	assert [entry.id for entry in logs] == [log.id]
	assert logs[0].snippet == "person near door"
	assert logs[0].user_id == "user-1"
	assert json.loads(logs[0].ai_response)["severity"] == "medium"
	assert logs[0].image_path.startswith(str(tmp_path))
	assert scheduler.stats.completed == 1


def test_fallback_assessment_is_still_logged(context, session_factory, tmp_path):
	assessor = StubAssessor(AssessmentResult.safe_default("AI request failed"))
	scheduler = make_scheduler(context, session_factory, tmp_path, assessor=assessor)

	scheduler.run_cycle()

	logs = logs_for(session_factory, context.session_id)
	assert len(logs) == 1
	assert logs[0].snippet == "AI request failed"


def test_capture_failure_skips_tick_without_log(context, session_factory, tmp_path):
	extractor = StubExtractor(error=CaptureError(CaptureError.PROCESS_ERROR, "ffmpeg exited with 1"))
	assessor = StubAssessor()
	scheduler = make_scheduler(context, session_factory, tmp_path, extractor=extractor, assessor=assessor)

	assert scheduler.run_cycle() is None
	assert scheduler.run_cycle() is None

	assert logs_for(session_factory, context.session_id) == []
	assert assessor.calls == []
	assert scheduler.stats.capture_failures == 2
	assert not scheduler.failed


def test_frame_paths_are_unique_per_tick(context, session_factory, tmp_path):
	scheduler = make_scheduler(context, session_factory, tmp_path)

	paths = {scheduler.next_frame_path() for _ in range(50)}

	assert len(paths) == 50
	assert all(path.parent == tmp_path for path in paths)


class BlockingAssessor(StubAssessor):
	def __init__(self):
		super().__init__()
		self.release = threading.Event()
		self.entered = threading.Event()
		self.active = 0
		self.max_active = 0
		self._lock = threading.Lock()

	def assess(self, frame_bytes, prompt):
		with self._lock:
			self.active += 1
			self.max_active = max(self.max_active, self.active)
		self.entered.set()
		self.release.wait(5)
		with self._lock:
			self.active -= 1
		return super().assess(frame_bytes, prompt)


def test_overlapping_ticks_are_dropped_not_queued(context, session_factory, tmp_path):
	assessor = BlockingAssessor()
	scheduler = make_scheduler(context, session_factory, tmp_path, assessor=assessor)

	assert scheduler.tick() is True
	assert assessor.entered.wait(2)
	assert scheduler.tick() is False
	assert scheduler.tick() is False
	assert scheduler.in_flight

	assessor.release.set()
	assert scheduler.wait_idle(2)

	assert assessor.max_active == 1
	assert scheduler.stats.skipped == 2
	assert len(logs_for(session_factory, context.session_id)) == 1

	# The guard is free again once the cycle finishes.
	assert scheduler.tick() is True
	assert scheduler.wait_idle(2)
	assert len(logs_for(session_factory, context.session_id)) == 2


def test_unexpected_cycle_error_releases_guard(context, session_factory, tmp_path):
	class ExplodingAssessor:
		def assess(self, frame_bytes, prompt):
			raise RuntimeError("boom")

	scheduler = make_scheduler(context, session_factory, tmp_path, assessor=ExplodingAssessor())

	assert scheduler.tick() is True
	assert scheduler.wait_idle(2)

	assert scheduler.stats.errors == 1
	assert not scheduler.failed
	assert logs_for(session_factory, context.session_id) == []


def test_persistence_failure_fails_the_session(context, session_factory, tmp_path):
	class BrokenLogStore:
		def append_log(self, db, **kwargs):
			raise PersistenceError("disk full")

	stop_event = threading.Event()
	scheduler = make_scheduler(
		context, session_factory, tmp_path, logs=BrokenLogStore(), stop_event=stop_event
	)

	assert scheduler.tick() is True
	assert scheduler.wait_idle(2)

	assert scheduler.failed
	assert stop_event.is_set()
	with session_factory() as db:
		assert db.get(SurveillanceSession, context.session_id).status == "failed"


def test_run_loops_until_stopped(context, session_factory, tmp_path):
	stop_event = threading.Event()

	class StoppingAssessor(StubAssessor):
		def assess(self, frame_bytes, prompt):
			result = super().assess(frame_bytes, prompt)
			stop_event.set()
			return result

	scheduler = make_scheduler(
		context, session_factory, tmp_path, assessor=StoppingAssessor(), stop_event=stop_event
	)

	runner = threading.Thread(target=scheduler.run, daemon=True)
	runner.start()
	runner.join(5)

	assert not runner.is_alive()
	assert wait_for(lambda: not scheduler.in_flight)
	assert scheduler.stats.ticks == 1
	assert len(logs_for(session_factory, context.session_id)) == 1


def test_run_ends_when_session_is_no_longer_running(context, session_factory, tmp_path):
	with session_factory() as db:
		SurveillanceSessionService().mark_stopped(db, context.session_id)
	extractor = StubExtractor()
	stop_event = threading.Event()
	scheduler = make_scheduler(
		context, session_factory, tmp_path, extractor=extractor, stop_event=stop_event
	)

	scheduler.run()

	assert scheduler.stats.ticks == 0
	assert extractor.paths == []
	assert not stop_event.is_set()


def test_run_notices_status_change_between_ticks(context, session_factory, tmp_path):
	fast = WorkerContext(
		session_id=context.session_id,
		stream_url=MEDIA_URL,
		interval=1,
		prompt="detect person",
		user_id="user-1",
	)

	class StoppedElsewhereAssessor(StubAssessor):
		def assess(self, frame_bytes, prompt):
			with session_factory() as db:
				SurveillanceSessionService().mark_stopped(db, fast.session_id)
			return super().assess(frame_bytes, prompt)

	scheduler = make_scheduler(fast, session_factory, tmp_path, assessor=StoppedElsewhereAssessor())

	runner = threading.Thread(target=scheduler.run, daemon=True)
	runner.start()
	runner.join(5)

	assert not runner.is_alive()
	assert scheduler.stats.ticks == 1
	assert len(logs_for(session_factory, context.session_id)) == 1
