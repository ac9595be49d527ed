from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from streamwatch.api.v1.api import api_router
from streamwatch.core.config import get_settings
from streamwatch.core.errors import SessionNotFound, ValidationError
from streamwatch.core.logging import configure_logging
from streamwatch.db.base import Base
from streamwatch.db.session import engine
from streamwatch.services.orchestrator import get_orchestrator
from streamwatch.models import surveillance  # noqa: F401


INVALID_REQUEST_MESSAGE = "Invalid request"


def create_app() -> FastAPI:
	settings = get_settings()
	configure_logging()

	app = FastAPI(title=settings.PROJECT_NAME)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=settings.CORS_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	app.include_router(api_router, prefix=settings.API_V1_STR)

	@app.exception_handler(ValidationError)
	def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
		return JSONResponse(
			status_code=status.HTTP_400_BAD_REQUEST,
			content={"success": False, "message": str(exc)},
		)

	@app.exception_handler(RequestValidationError)
	def handle_request_validation_error(
		request: Request, exc: RequestValidationError
	) -> JSONResponse:
		return JSONResponse(
			status_code=status.HTTP_400_BAD_REQUEST,
			content={"success": False, "message": INVALID_REQUEST_MESSAGE},
		)

	@app.exception_handler(SessionNotFound)
	def handle_session_not_found(request: Request, exc: SessionNotFound) -> JSONResponse:
		return JSONResponse(
			status_code=status.HTTP_404_NOT_FOUND,
			content={"success": False, "message": str(exc)},
		)

	@app.on_event("startup")
	def on_startup() -> None:
		Base.metadata.create_all(bind=engine)
		get_orchestrator().fail_orphaned_sessions()

	@app.on_event("shutdown")
	def on_shutdown() -> None:
		get_orchestrator().shutdown()

	@app.get("/health")
	def health_check():
		return {"status": "ok"}

	return app


app = create_app()
