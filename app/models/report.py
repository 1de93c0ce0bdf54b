"""Analysis report model: the canonical shape of one analysis result."""

from datetime import datetime, timezone
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, computed_field

Emotion = Literal["happy", "anxious", "fear", "aggressive", "pain", "neutral"]
Tail = Literal["high_wag", "low", "still", "tucked"]
Ears = Literal["forward", "flat", "back", "perked"]
Posture = Literal["relaxed", "tense", "crouched", "play_bow"]
BodyEyes = Literal["soft", "hard", "whale_eye"]
Mouth = Literal["relaxed", "pant", "lip_lick", "snarl"]
Gait = Literal["normal", "limping", "stiff"]
HealthEyes = Literal["clear", "red", "cloudy"]
Breathing = Literal["normal", "heavy", "labored"]
Skin = Literal["healthy", "irritated"]
Urgency = Literal["green", "yellow", "red"]

EMOTIONS: tuple[str, ...] = get_args(Emotion)
URGENCY_LEVELS: tuple[str, ...] = get_args(Urgency)


class BodyLanguage(BaseModel):
    tail: Tail
    ears: Ears
    posture: Posture
    eyes: BodyEyes
    mouth: Mouth


class HealthCheck(BaseModel):
    gait: Gait
    eyes: HealthEyes
    breathing: Breathing
    skin: Skin
    urgency: Urgency


class Report(BaseModel):
    """Structured output of one analysis. Any out-of-enum value fails validation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    emotion: Emotion
    confidence: int = Field(..., ge=0, le=100)
    translation: str = Field(..., min_length=1)
    body_language: BodyLanguage = Field(..., alias="bodyLanguage")
    health: HealthCheck
    tips: list[str]

    def to_json(self) -> str:
        """Serialize with the wire names (``bodyLanguage``)."""
        return self.model_dump_json(by_alias=True)


class StoredReport(BaseModel):
    """A report plus its persisted, time-derived identifier."""
    id: str
    report: Report

    @computed_field
    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(int(self.id) / 1000, tz=timezone.utc)

