"""Business profile schemas."""

from pydantic import BaseModel, Field, field_validator


class QueryCounts(BaseModel):
    """Default number of queries per type."""

    consumer: int = Field(10, ge=0)
    business: int = Field(10, ge=0)


class BusinessProfile(BaseModel):
    """The business being tested."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field("", max_length=2048)
    location: str = Field("Australia", max_length=255)
    aliases: list[str] = Field(default_factory=list)
    queries: QueryCounts = Field(default_factory=QueryCounts)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Business name must not be blank")
        return v

    @field_validator("aliases")
    @classmethod
    def clean_aliases(cls, v: list[str]) -> list[str]:
        """Drop blank and duplicate aliases, keeping order."""
        seen: list[str] = []
        for alias in (a.strip() for a in v):
            if alias and alias not in seen:
                seen.append(alias)
        return seen
