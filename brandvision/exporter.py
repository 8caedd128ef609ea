"""
exporter.py — Export archived sessions to files.

  export_image(session, concept_id, output_dir)  → <platform>-creative.png
  save_session_md(session, output_dir)           → <brand>_research.md
  create_session_zip(session, output_dir)        → <brand>_creatives.zip
      images/    — one PNG per generated concept
      report.md  — analysis, keywords, hooks, concepts, sources
      session.json
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from .imager import decode_image
from .models import Session

logger = logging.getLogger(__name__)


def _safe_name(text: str, fallback: str = "brand") -> str:
    safe = re.sub(r"[^a-zA-Z0-9_-]", "_", text.strip())[:30].strip("_")
    return safe or fallback


def _png_bytes(encoded: str) -> bytes:
    """Decode a data URI and re-encode it as PNG whatever the source format."""
    _, raw = decode_image(encoded)
    with Image.open(io.BytesIO(raw)) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "transparency" in img.info else "RGB")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
    return buf.getvalue()


def export_image(session: Session, concept_id: str, output_dir: Path) -> Path:
    """
    Write one concept's image as a PNG file.

    Raises:
        KeyError: unknown concept, or the concept has no image yet
        ValueError: the stored image is not a decodable data URI
        OSError: Pillow cannot read the decoded image
    """
    concept = session.data.concept(concept_id)
    if concept is None:
        raise KeyError(f"Concept {concept_id} not found in session {session.id}")
    encoded = session.images.get(concept_id)
    if not encoded:
        raise KeyError(f"Concept {concept_id} has no generated image")

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{_safe_name(concept.platform)}-creative.png"
    path.write_bytes(_png_bytes(encoded))
    logger.info(f"Exported {concept.platform} creative → {path}")
    return path


def render_session_md(session: Session) -> str:
    a = session.data.analysis
    updated = datetime.fromtimestamp(session.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
    lines = [
        f"# {a.name or session.url} — Brand Research",
        f"\n_Source: {session.url} · Updated: {updated}_\n",
        "---\n",
        "## Brand Insights",
        f"**Identity:** {a.identity}  ",
        f"**Audience:** {a.audience}  ",
        f"**Tone:** {a.tone}  ",
        f"**Value Proposition:** {a.value_proposition}  ",
        f"**Market Position:** {a.market_position}\n",
    ]

    for title, items in (
        ("Offerings", a.offerings),
        ("Benefits", a.benefits),
        ("Pain Points Solved", a.pain_points),
        ("Emotional Triggers", a.emotional_triggers),
        ("Hooks", a.hooks),
    ):
        if items:
            lines.append(f"### {title}")
            lines += [f"- {item}" for item in items]
            lines.append("")

    if a.keywords:
        lines += ["## SEO Keywords", " ".join(f"#{kw}" for kw in a.keywords), ""]

    lines.append("---\n")
    for c in session.data.concepts:
        status = "generated" if c.id in session.images else "not generated"
        lines += [
            f"## {c.platform} ({c.aspect_ratio}) — {c.headline}",
            f"{c.supporting_text}\n",
            f"**CTA:** {c.cta}  ",
            f"**Visual:** {c.visual_prompt}  ",
            f"**Image:** {status}\n",
        ]

    if session.data.sources:
        lines.append("## Sources")
        lines += [f"- [{s.title}]({s.uri})" for s in session.data.sources]
        lines.append("")

    return "\n".join(lines)


def save_session_md(session: Session, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    name = _safe_name(session.data.analysis.name or session.id)
    md_path = output_dir / f"{name.lower()}_research.md"
    md_path.write_text(render_session_md(session), encoding="utf-8")
    return md_path


def create_session_zip(session: Session, output_dir: Path) -> Optional[Path]:
    """
    Bundle a session's images, markdown report and raw JSON into a ZIP.

    Images that cannot be decoded are skipped. Returns None on failure.
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        name = _safe_name(session.data.analysis.name or session.id)
        zip_path = output_dir / f"{name.lower()}_creatives.zip"

        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for concept in session.data.concepts:
                encoded = session.images.get(concept.id)
                if not encoded:
                    continue
                try:
                    png = _png_bytes(encoded)
                except Exception as e:
                    logger.warning(f"Skipping image for {concept.id}: {e}")
                    continue
                zf.writestr(f"images/{_safe_name(concept.platform)}-{_safe_name(concept.id)}.png", png)

            zf.writestr("report.md", render_session_md(session))
            zf.writestr("session.json", json.dumps(session.to_record(), indent=2, ensure_ascii=False))

        logger.info(f"ZIP created: {zip_path.name} ({zip_path.stat().st_size // 1024} KB)")
        return zip_path

    except Exception as e:
        logger.warning(f"ZIP creation failed: {e}")

    return None
