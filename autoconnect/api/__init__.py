"""Routes API / API routes."""

from fastapi import APIRouter

from autoconnect.api import added_vehicles

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(added_vehicles.router, prefix="/added-vehicles", tags=["added-vehicles"])
