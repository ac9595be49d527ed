import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from streamwatch.api.deps import get_current_user, get_db_session, get_session_orchestrator
from streamwatch.core.errors import StartError, ValidationError
from streamwatch.core.security import UserContext
from streamwatch.schemas.surveillance import (
	SurveillanceErrorResponse,
	SurveillanceLogRead,
	SurveillanceSessionRead,
	SurveillanceStartRequest,
	SurveillanceStartResponse,
)
from streamwatch.services.log_service import SurveillanceLogService
from streamwatch.services.orchestrator import SessionOrchestrator
from streamwatch.services.session_service import SurveillanceSessionService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_user)])
session_service = SurveillanceSessionService()
log_service = SurveillanceLogService()

START_FAILED_MESSAGE = "Failed to start Surveillance"


@router.post(
	"/start",
	response_model=SurveillanceStartResponse,
	status_code=status.HTTP_201_CREATED,
	responses={
		400: {"model": SurveillanceErrorResponse},
		500: {"model": SurveillanceErrorResponse},
	},
)
def start_surveillance(
	payload: SurveillanceStartRequest,
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
	orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
):
	try:
		session_id = orchestrator.start_session(
			db,
			user_id=user.user_id,
			source=payload.youtube_url,
			interval=payload.interval,
			prompt=payload.prompt,
		)
	except ValidationError:
		# Answered by the app-level 400 handler.
		raise
	except StartError as exc:
		logger.error("Start request from %s failed: %s", user.user_id, exc)
		return _start_failed()
	except Exception:
		logger.exception("Unexpected error starting surveillance for %s", user.user_id)
		return _start_failed()

	return SurveillanceStartResponse(session_id=session_id)


def _start_failed() -> JSONResponse:
	return JSONResponse(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		content=SurveillanceErrorResponse(message=START_FAILED_MESSAGE).model_dump(),
	)


@router.post("/{session_id}/stop", response_model=SurveillanceSessionRead)
def stop_surveillance(
	session_id: str,
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
	orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
):
	return orchestrator.stop_session(db, user.user_id, session_id)


@router.get("/sessions", response_model=list[SurveillanceSessionRead])
def list_sessions(
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
	skip: int = 0,
	limit: int = 100,
):
	return session_service.list_sessions(db, user.user_id, skip=skip, limit=limit)


@router.get("/sessions/{session_id}", response_model=SurveillanceSessionRead)
def get_session(
	session_id: str,
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
):
	return session_service.get_user_session(db, user.user_id, session_id)


@router.get("/sessions/{session_id}/logs", response_model=list[SurveillanceLogRead])
def list_session_logs(
	session_id: str,
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
	skip: int = 0,
	limit: int = 100,
):
	session_service.get_user_session(db, user.user_id, session_id)
	return log_service.list_session_logs(db, session_id, skip=skip, limit=limit)


@router.get("/logs", response_model=list[SurveillanceLogRead])
def list_logs(
	db: Session = Depends(get_db_session),
	user: UserContext = Depends(get_current_user),
	skip: int = 0,
	limit: int = 100,
):
	return log_service.list_user_logs(db, user.user_id, skip=skip, limit=limit)
