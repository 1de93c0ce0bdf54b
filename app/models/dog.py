from pydantic import BaseModel, ConfigDict, Field


class DogSubject(BaseModel):
    """Dog metadata sent alongside the media. Immutable per request."""

    model_config = ConfigDict(frozen=True)

    breed: str = Field(..., min_length=1, max_length=100)
    age_years: float = Field(..., ge=0, le=40, description="Age in years")
