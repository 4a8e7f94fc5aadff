from fastapi import APIRouter

from app.api.access_requests import router as access_requests_router
from app.api.jobs import router as jobs_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(access_requests_router, prefix="/api", tags=["access-requests"])
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
