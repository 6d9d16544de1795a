"""V1 API router - aggregates all versioned endpoints."""

from fastapi import APIRouter

from api.routers import config, deep_dive, reports, test_runs
from api.schemas.responses import ErrorResponse

router = APIRouter(
    responses={
        404: {"model": ErrorResponse, "description": "Resource not found"},
        422: {"model": ErrorResponse, "description": "Validation error"},
    }
)

# Test run endpoints
router.include_router(test_runs.router)

# Business profile endpoints
router.include_router(config.router)

# Report endpoints
router.include_router(reports.router)

# Deep-dive endpoints
router.include_router(deep_dive.admin_router)
router.include_router(deep_dive.router)


@router.get("/")
async def v1_root() -> dict[str, str]:
    """V1 API root endpoint."""
    return {
        "version": "1",
        "status": "active",
    }
