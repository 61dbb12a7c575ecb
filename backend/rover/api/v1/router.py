"""API v1 router aggregation."""

from fastapi import APIRouter

from rover.api.v1.routes import hazards, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(hazards.router, prefix="/hazards", tags=["Hazards"])
