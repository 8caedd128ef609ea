"""
analyzer.py — Brand analysis using Gemini with Google Search Grounding.

Provides:
  BrandAnalyzer.analyze(url, goal, platforms) → AnalysisResponse
    - Researches the brand behind the URL (search grounding enabled)
    - Returns brand insights, SEO keywords, marketing hooks and one
      creative concept per requested platform as a single JSON payload
    - Citations from the grounding metadata are surfaced as `sources`

Any transport, empty-response or parse failure raises AnalysisError.
The call is not retried.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from google import genai
from google.genai import types
from pydantic import ValidationError
from rich.console import Console

from .config import DEFAULT_ANALYSIS_MODEL, DEFAULT_TIMEOUT_SECONDS
from .models import PLATFORMS, AnalysisResponse, Source

console = Console()


class AnalysisError(Exception):
    """Brand analysis could not be produced."""


# ── Prompts ───────────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """\
You are an advanced AI research and creative assistant designed to help with affiliate marketing and brand analysis.
Your task is to analyze the provided URL and perform:
1. Website Research: Extract brand identity, core offerings, target audience, tone, and value proposition.
2. Brand Insights: Summarize market positioning, ideal customer profile, and competitive advantage.
3. SEO Keyword Analysis: Generate a comprehensive list of high-traffic, relevant SEO keywords and long-tail phrases that align with the brand's offerings.
4. Visual Concepts: Design original, high-conversion visual concepts, exactly one per target platform.
   - Must not copy brand visuals or logos.
   - Highlight benefits and emotional triggers.
   - Choose an aspect ratio suited to the platform (1:1, 4:5, 9:16, 16:9, 3:4 or 4:3).
   - Give every concept a short id that is unique within the response.
"""

USER_PROMPT_TEMPLATE = """\
Website: {url}
Primary Goal: {goal}
Target Platforms: {platforms}

Return a JSON response matching the schema. Focus on SEO-optimized keywords, emotional triggers, and pain points solved.
"""


# ── Response schema ───────────────────────────────────────────────────────────

def _string() -> types.Schema:
    return types.Schema(type=types.Type.STRING)


def _string_list(description: Optional[str] = None) -> types.Schema:
    return types.Schema(type=types.Type.ARRAY, items=_string(), description=description)


_ANALYSIS_FIELDS = [
    "name", "identity", "offerings", "audience", "tone", "valueProposition",
    "benefits", "painPoints", "marketPosition", "emotionalTriggers", "keywords", "hooks",
]

_CONCEPT_FIELDS = [
    "id", "platform", "aspectRatio", "headline", "supportingText", "cta", "visualPrompt",
]

ANALYSIS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "analysis": types.Schema(
            type=types.Type.OBJECT,
            properties={
                "name": _string(),
                "identity": _string(),
                "offerings": _string_list(),
                "audience": _string(),
                "tone": _string(),
                "valueProposition": _string(),
                "benefits": _string_list(),
                "painPoints": _string_list(),
                "marketPosition": _string(),
                "emotionalTriggers": _string_list(),
                "keywords": _string_list("List of high-value SEO keywords"),
                "hooks": _string_list(),
            },
            required=_ANALYSIS_FIELDS,
        ),
        "concepts": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "id": _string(),
                    "platform": types.Schema(type=types.Type.STRING, enum=list(PLATFORMS)),
                    "aspectRatio": types.Schema(
                        type=types.Type.STRING,
                        description="Aspect ratio like 1:1, 9:16, or 16:9",
                    ),
                    "headline": _string(),
                    "supportingText": _string(),
                    "cta": _string(),
                    "visualPrompt": types.Schema(
                        type=types.Type.STRING,
                        description="Detailed AI image generation prompt for an original scene (no text/logos)",
                    ),
                },
                required=_CONCEPT_FIELDS,
            ),
        ),
    },
    required=["analysis", "concepts"],
)


# ── Parsing helpers ───────────────────────────────────────────────────────────

def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("```")[1]
        if raw.startswith("json"):
            raw = raw[4:]
    return raw.strip()


def extract_sources(response) -> Optional[List[Source]]:
    """
    Collect web citations from the first candidate's grounding metadata.

    Chunks without a usable uri are dropped. Returns None when the response
    carries no grounding metadata at all.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) if metadata else None
    if chunks is None:
        return None

    sources: List[Source] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None) if web else None
        if not uri or uri == "#":
            continue
        title = getattr(web, "title", None) or "External Source"
        sources.append(Source(title=title, uri=uri))
    return sources


def parse_analysis(raw: str, sources: Optional[List[Source]] = None) -> AnalysisResponse:
    """Turn the model's JSON text into an AnalysisResponse or raise AnalysisError."""
    if not raw or not raw.strip():
        raise AnalysisError("Gemini returned no content")
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Analysis response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("Analysis response is not a JSON object")

    payload = {"analysis": data.get("analysis"), "concepts": data.get("concepts")}
    if sources is not None:
        payload["sources"] = sources
    try:
        return AnalysisResponse.model_validate(payload)
    except ValidationError as e:
        raise AnalysisError(f"Analysis response does not match the expected shape: {e}") from e


# ── Analyzer ──────────────────────────────────────────────────────────────────

class BrandAnalyzer:
    """Researches a brand's website and drafts per-platform creative concepts."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANALYSIS_MODEL,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        client=None,
    ) -> None:
        self.model = model
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
        )

    def analyze(self, url: str, goal: str, platforms: Sequence[str]) -> AnalysisResponse:
        """
        Run one grounded analysis request.

        Args:
            url:       Website to research (non-empty)
            goal:      Campaign goal, e.g. "Affiliate Sales"
            platforms: Non-empty selection from PLATFORMS

        Returns:
            AnalysisResponse with analysis, concepts and optional sources

        Raises:
            ValueError:    invalid input (no network call made)
            AnalysisError: the service call or its payload failed
        """
        if not url or not url.strip():
            raise ValueError("url must not be empty")
        if not platforms:
            raise ValueError("at least one platform is required")
        unknown = [p for p in platforms if p not in PLATFORMS]
        if unknown:
            raise ValueError(f"unknown platform(s): {', '.join(unknown)}")

        prompt = USER_PROMPT_TEMPLATE.format(
            url=url.strip(),
            goal=goal,
            platforms=", ".join(platforms),
        )

        console.print(f"  [dim]Analyzing {url.strip()} ({self.model} + Search)...[/dim]")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_PROMPT,
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                    response_mime_type="application/json",
                    response_schema=ANALYSIS_SCHEMA,
                ),
            )
        except Exception as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e

        result = parse_analysis(response.text or "", extract_sources(response))
        console.print(
            f"  [dim]Analysis: {len(result.concepts)} concept(s), "
            f"{len(result.analysis.keywords)} keyword(s)"
            + (f", {len(result.sources)} source(s)" if result.sources else "")
            + "[/dim]"
        )
        return result
