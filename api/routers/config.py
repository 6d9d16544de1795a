"""Business profile endpoints."""

from fastapi import APIRouter

from api.deps import ProfileServiceDep
from api.schemas.profile import BusinessProfile
from api.schemas.responses import SuccessResponse

router = APIRouter(prefix="/config", tags=["Config"])


@router.get("", response_model=SuccessResponse[BusinessProfile], summary="Get business profile")
async def get_profile(profiles: ProfileServiceDep) -> SuccessResponse[BusinessProfile]:
    """The business the tests run for."""
    return SuccessResponse(data=profiles.read())


@router.put("", response_model=SuccessResponse[BusinessProfile], summary="Save business profile")
async def save_profile(
    profile: BusinessProfile,
    profiles: ProfileServiceDep,
) -> SuccessResponse[BusinessProfile]:
    """Replace the business profile."""
    return SuccessResponse(data=profiles.save(profile))
