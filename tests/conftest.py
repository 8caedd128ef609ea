"""
Shared fixtures. No test talks to Gemini: the clients are replaced with
small fakes and the archive slot with an in-memory one where needed.
"""
import base64
import io

import pytest
from PIL import Image

from brandvision.archive import ArchiveStore, FileSlot, QuotaExceededError
from brandvision.models import AnalysisResponse, Session


def analysis_payload(platforms=("Instagram", "Website")) -> dict:
    return {
        "analysis": {
            "name": "Example Co",
            "identity": "Friendly home-goods brand",
            "offerings": ["Candles", "Diffusers"],
            "audience": "Urban millennials",
            "tone": "Warm",
            "valueProposition": "Calm at home, delivered",
            "benefits": ["Relaxation"],
            "painPoints": ["Stress"],
            "marketPosition": "Premium-accessible",
            "emotionalTriggers": ["Comfort"],
            "keywords": ["soy candles", "aromatherapy", "soy candles"],
            "hooks": ["Light up your evening"],
        },
        "concepts": [
            {
                "id": f"c{i + 1}",
                "platform": p,
                "aspectRatio": "4:5" if p == "Instagram" else "16:9",
                "headline": f"Headline {i + 1}",
                "supportingText": "Copy",
                "cta": "Shop now",
                "visualPrompt": "Candle on a wooden table at dusk",
            }
            for i, p in enumerate(platforms)
        ],
    }


def make_response(platforms=("Instagram", "Website")) -> AnalysisResponse:
    return AnalysisResponse.model_validate(analysis_payload(platforms))


def make_session(session_id: str, timestamp: int = 0, images=None) -> Session:
    return Session(
        id=session_id,
        timestamp=timestamp,
        url=f"https://{session_id}.example",
        data=make_response(),
        images=images or {},
    )


def png_data_uri(color=(200, 40, 40), fmt="PNG", mime="image/png") -> str:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buf, format=fmt)
    return f"data:{mime};base64,{base64.b64encode(buf.getvalue()).decode('ascii')}"


class MemorySlot:
    """Slot that keeps the blob in memory and can be told to reject writes."""

    def __init__(self, quota_bytes=None, initial=None):
        self.quota_bytes = quota_bytes
        self.value = initial
        self.writes = []
        self.always_fail = False

    def read(self):
        return self.value

    def write(self, text):
        self.writes.append(text)
        if self.always_fail or (self.quota_bytes is not None and len(text.encode("utf-8")) > self.quota_bytes):
            raise QuotaExceededError("quota exceeded")
        self.value = text

    def clear(self):
        self.value = None


class FakeAnalyzer:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def analyze(self, url, goal, platforms):
        self.calls.append((url, goal, list(platforms)))
        if self.error:
            raise self.error
        return self.response


class FakeImageGenerator:
    """Returns a scripted outcome per concept id: an encoded string or an exception."""

    def __init__(self, outcomes=None, default="data:image/png;base64,AAAA"):
        self.outcomes = outcomes or {}
        self.default = default
        self.calls = []

    def generate(self, concept):
        self.calls.append(concept.id)
        outcome = self.outcomes.get(concept.id, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def memory_slot():
    return MemorySlot()


@pytest.fixture
def store(memory_slot):
    return ArchiveStore(memory_slot)


@pytest.fixture
def file_store(tmp_path):
    return ArchiveStore(FileSlot(tmp_path / "library.json"))
