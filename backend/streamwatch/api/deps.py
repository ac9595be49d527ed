import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose.exceptions import JWTError
from sqlalchemy.orm import Session

from streamwatch.core.config import get_settings
from streamwatch.core.security import UserContext, get_user_from_token
from streamwatch.db.session import get_db
from streamwatch.services.orchestrator import SessionOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
	credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UserContext:
	settings = get_settings()
	if settings.AUTH_MODE.lower() == "stub":
		return get_user_from_token("stub")

	if credentials is None or not credentials.credentials:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized, no token"
		)
	try:
		return get_user_from_token(credentials.credentials)
	except JWTError as exc:
		logger.info("Rejected bearer token: %s", exc)
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized, token failed"
		) from exc


def get_db_session(db: Session = Depends(get_db)) -> Session:
	return db


def get_session_orchestrator() -> SessionOrchestrator:
	return get_orchestrator()
