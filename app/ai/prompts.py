"""Prompts and the response schema handed to the generative model."""

import json
from typing import Any, get_args

from app.models.dog import DogSubject
from app.models.report import (
    BodyEyes, Breathing, Ears, Emotion, Gait, HealthEyes, Mouth, Posture, Report, Skin, Tail, Urgency,
)


def _enum(literal: Any, description: str) -> dict:
    return {"type": "STRING", "format": "enum", "enum": list(get_args(literal)), "description": description}


# Mirrors app.models.report.Report in the OpenAPI subset Gemini accepts.
REPORT_RESPONSE_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "emotion": _enum(Emotion, "The detected emotion of the dog."),
        "confidence": {"type": "INTEGER", "description": "Confidence of the emotion detection (0-100)."},
        "translation": {"type": "STRING", "description": "A human-readable translation of the dog's emotion."},
        "bodyLanguage": {
            "type": "OBJECT",
            "properties": {
                "tail": _enum(Tail, "Position and movement of the tail."),
                "ears": _enum(Ears, "Position of the ears."),
                "posture": _enum(Posture, "Overall posture."),
                "eyes": _enum(BodyEyes, "Appearance of the eyes."),
                "mouth": _enum(Mouth, "State of the mouth."),
            },
            "required": ["tail", "ears", "posture", "eyes", "mouth"],
        },
        "health": {
            "type": "OBJECT",
            "properties": {
                "gait": _enum(Gait, "Gait analysis."),
                "eyes": _enum(HealthEyes, "Clarity of the eyes."),
                "breathing": _enum(Breathing, "Breathing rate and effort."),
                "skin": _enum(Skin, "Condition of the skin."),
                "urgency": _enum(Urgency, "Urgency of any health concern."),
            },
            "required": ["gait", "eyes", "breathing", "skin", "urgency"],
        },
        "tips": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Actionable tips for the owner.",
        },
    },
    "required": ["emotion", "confidence", "translation", "bodyLanguage", "health", "tips"],
}


def _format_age(age_years: float) -> str:
    if age_years < 1:
        months = max(1, round(age_years * 12))
        return f"{months} months"
    return f"{age_years:g} years"


def build_analysis_prompt(subject: DogSubject) -> str:
    options = "\n".join(
        f"- {name}: {'|'.join(values)}"
        for name, values in [
            ("emotion", get_args(Emotion)),
            ("bodyLanguage.tail", get_args(Tail)),
            ("bodyLanguage.ears", get_args(Ears)),
            ("bodyLanguage.posture", get_args(Posture)),
            ("bodyLanguage.eyes", get_args(BodyEyes)),
            ("bodyLanguage.mouth", get_args(Mouth)),
            ("health.gait", get_args(Gait)),
            ("health.eyes", get_args(HealthEyes)),
            ("health.breathing", get_args(Breathing)),
            ("health.skin", get_args(Skin)),
            ("health.urgency", get_args(Urgency)),
        ]
    )
    return f"""Analyze this dog video/image as a veterinary behaviorist.

## Dog
- Breed: {subject.breed}
- Age: {_format_age(subject.age_years)}

## Allowed values
{options}
- confidence: integer 0-100
- translation: one or two sentences, written as what the dog would say
- tips: 0 to 5 short actionable tips

Return JSON only, using exactly the keys and values above."""


CHAT_SYSTEM_PROMPT = (
    "You are Pawsight, a friendly assistant helping a dog owner understand an "
    "AI behavior and health report about their dog. "
    "Ground every answer in the report below; if the report does not cover "
    "the question, say so. Answer in 2-4 short sentences, warm but factual. "
    "If the urgency is yellow or red, recommend contacting a veterinarian. "
    "Always remind the owner that this is not veterinary advice when health "
    "is discussed."
)


def build_chat_system(report: Report) -> str:
    """System prompt carrying the full serialized report as grounding."""
    grounding = json.dumps(report.model_dump(by_alias=True), indent=2)
    return f"{CHAT_SYSTEM_PROMPT}\n\n## Report\n{grounding}"
