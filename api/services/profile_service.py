"""Business profile persistence."""

import json
from pathlib import Path

import structlog
from pydantic import ValidationError as PydanticValidationError

from api.exceptions import NotFoundError, ValidationError
from api.schemas.profile import BusinessProfile
from worker.artifacts.storage import write_text_atomic

logger = structlog.get_logger(__name__)

PROFILE_FILENAME = "business_profile.json"


class ProfileService:
    """Reads and writes the single business profile as JSON."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / PROFILE_FILENAME

    def get(self) -> BusinessProfile | None:
        """The stored profile, or None when none is saved or it is unreadable."""
        if not self.path.is_file():
            return None
        try:
            return BusinessProfile.model_validate(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning("business_profile_unreadable", path=str(self.path), error=str(e))
            return None

    def read(self) -> BusinessProfile:
        """
        The stored profile.

        Raises:
            NotFoundError: If no profile is saved.
        """
        profile = self.get()
        if profile is None:
            raise NotFoundError("Business profile")
        return profile

    def require(self) -> BusinessProfile:
        """
        The stored profile, as a precondition for starting a local run.

        Raises:
            ValidationError: If no profile is saved.
        """
        profile = self.get()
        if profile is None:
            raise ValidationError(
                "Business profile is not configured. Save a business name in settings first.",
                field="name",
            )
        return profile

    def save(self, profile: BusinessProfile) -> BusinessProfile:
        """Replace the stored profile."""
        write_text_atomic(self.path, profile.model_dump_json(indent=2))
        logger.info("business_profile_saved", name=profile.name)
        return profile
