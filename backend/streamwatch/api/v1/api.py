from fastapi import APIRouter

from streamwatch.api.v1.endpoints import surveillance

api_router = APIRouter()

api_router.include_router(surveillance.router, prefix="/surveillance", tags=["surveillance"])
