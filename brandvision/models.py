"""
models.py — Data model for brand analyses, creative concepts and archived sessions.

All models serialize with camelCase keys so the persisted archive keeps the
layout:

  {id, timestamp, url, data: {analysis, concepts, sources?}, images: {conceptId: dataUri}}

Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import time
import uuid
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ── Enumerations ──────────────────────────────────────────────────────────────

Platform = Literal[
    "Instagram",
    "Facebook Ads",
    "Google Ads",
    "LinkedIn",
    "Pinterest",
    "YouTube",
    "Website",
]

PLATFORMS: tuple = (
    "Instagram",
    "Facebook Ads",
    "Google Ads",
    "LinkedIn",
    "Pinterest",
    "YouTube",
    "Website",
)

GOALS: tuple = (
    "Affiliate Sales",
    "Brand Awareness",
    "Lead Generation",
    "App Installs",
)

DEFAULT_GOAL = "Affiliate Sales"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Analysis payload ──────────────────────────────────────────────────────────

class BrandAnalysis(_CamelModel):
    name: str = ""
    identity: str = ""
    offerings: List[str] = Field(default_factory=list)
    audience: str = ""
    tone: str = ""
    value_proposition: str = ""
    benefits: List[str] = Field(default_factory=list)
    pain_points: List[str] = Field(default_factory=list)
    market_position: str = ""
    emotional_triggers: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    hooks: List[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def _unique_keywords(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for kw in value:
            if kw and kw not in seen:
                seen.append(kw)
        return seen


class ImageConcept(_CamelModel):
    id: str
    platform: Platform
    aspect_ratio: str = Field(default="1:1", description="Aspect ratio like 1:1, 9:16, or 16:9")
    headline: str = ""
    supporting_text: str = ""
    cta: str = ""
    visual_prompt: str = ""


class Source(_CamelModel):
    title: str = "External Source"
    uri: str


class AnalysisResponse(_CamelModel):
    analysis: BrandAnalysis
    concepts: List[ImageConcept]
    sources: Optional[List[Source]] = None

    @model_validator(mode="after")
    def _unique_concept_ids(self) -> "AnalysisResponse":
        seen = set()
        for c in self.concepts:
            if c.id in seen:
                raise ValueError(f"duplicate concept id: {c.id}")
            seen.add(c.id)
        return self

    def concept(self, concept_id: str) -> Optional[ImageConcept]:
        return next((c for c in self.concepts if c.id == concept_id), None)

    def with_keywords(self, keywords: List[str]) -> "AnalysisResponse":
        """Return a copy whose analysis carries the given keyword list."""
        analysis = self.analysis.model_copy(update={"keywords": list(keywords)})
        return self.model_copy(update={"analysis": analysis})


# ── Archived session ──────────────────────────────────────────────────────────

def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


def now_millis() -> int:
    return int(time.time() * 1000)


class Session(_CamelModel):
    """One analysis plus whatever images have arrived for its concepts."""
    id: str = Field(default_factory=new_session_id)
    timestamp: int = Field(default_factory=now_millis)
    url: str
    data: AnalysisResponse
    images: Dict[str, str] = Field(default_factory=dict)

    def has_images(self) -> bool:
        return bool(self.images)

    def without_images(self) -> "Session":
        return self.model_copy(update={"images": {}})

    def to_record(self) -> dict:
        """Serializable dict in the persisted camelCase layout."""
        return self.model_dump(by_alias=True, exclude_none=True)
