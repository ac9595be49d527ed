from dataclasses import dataclass

from jose import jwt
from jose.exceptions import JWTError

from streamwatch.core.config import get_settings


@dataclass
class UserContext:
	user_id: str
	email: str | None = None


def _verify_shared_secret_jwt(token: str) -> UserContext:
	settings = get_settings()
	if not settings.JWT_SECRET_KEY:
		raise JWTError("JWT_SECRET_KEY is not configured")

	claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
	user_id = claims.get("userId") or claims.get("sub")
	if not user_id:
		raise JWTError("Token carries no user id")
	return UserContext(user_id=str(user_id), email=claims.get("email"))


def get_user_from_token(token: str) -> UserContext:
	"""Resolve the caller identity; raises JWTError for rejected tokens."""
	settings = get_settings()
	if settings.AUTH_MODE.lower() == "jwt":
		return _verify_shared_secret_jwt(token)

	# Stub mode for local development.
	return UserContext(user_id=settings.STUB_USER_ID, email="local@example.com")
