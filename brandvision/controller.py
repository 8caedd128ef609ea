"""
controller.py — Orchestrates one analysis session at a time.

  idle → analyzing → awaiting_images → ready
              └────→ failed        (analysis error only)

The controller owns the active session (its id, analysis result and image
map) and the ArchiveStore. Every state change that matters to the archive
goes through one method that applies it and upserts the session once:

  on_analysis_complete  → stub session (no images) archived immediately
  on_image_arrived      → image merged, session re-archived
  on_keywords_edited    → keyword list replaced, session re-archived

Images are requested strictly one concept at a time, in concept order.
Results are keyed by the session id captured when the request was made, so
a late result for a session that is no longer active is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .archive import ArchiveStore
from .models import AnalysisResponse, ImageConcept, Session, new_session_id, now_millis

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    AWAITING_IMAGES = "awaiting_images"
    READY = "ready"
    FAILED = "failed"


class NoActiveSessionError(Exception):
    """A session edit was attempted while no session is active."""


@dataclass
class ImageOutcome:
    """Result of one image request: either an encoded image or the error."""
    session_id: str
    concept_id: str
    image: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


def normalize_keyword(raw: str) -> str:
    kw = raw.strip()
    if kw.startswith("#"):
        kw = kw[1:]
    return kw


class SessionController:
    """Runs analyze → archive stub → images → ready, and keeps the archive in step."""

    def __init__(
        self,
        analyzer,
        image_generator,
        store: ArchiveStore,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.analyzer = analyzer
        self.image_generator = image_generator
        self.store = store
        self.on_progress = on_progress
        self._clear()

    def _clear(self) -> None:
        self.state = SessionState.IDLE
        self.error: Optional[str] = None
        self.active_id: Optional[str] = None
        self.url: Optional[str] = None
        self.result: Optional[AnalysisResponse] = None
        self.images: Dict[str, str] = {}

    def _progress(self, message: str) -> None:
        logger.debug(message)
        if self.on_progress:
            self.on_progress(message)

    # ── Views ─────────────────────────────────────────────────────────────────

    @property
    def keywords(self) -> List[str]:
        return list(self.result.analysis.keywords) if self.result else []

    def active_session(self) -> Optional[Session]:
        """Snapshot of the active session as it would be archived."""
        if self.active_id is None or self.result is None:
            return None
        return Session(
            id=self.active_id,
            timestamp=now_millis(),
            url=self.url or "",
            data=self.result,
            images=dict(self.images),
        )

    def _archive_active(self) -> None:
        session = self.active_session()
        if session is not None:
            self.store.upsert(session)

    # ── Workflow ──────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget the in-memory session. Its archived copy is left as is."""
        self._clear()

    def submit(self, url: str, goal: str, platforms: Sequence[str]) -> Optional[Session]:
        """
        Run a full session: analysis, stub archive entry, then every image.

        Returns the final session, or None when the analysis failed (the
        message is then available in `self.error`).
        """
        self._clear()
        self.state = SessionState.ANALYZING
        self._progress("Analyzing brand DNA...")

        try:
            response = self.analyzer.analyze(url, goal, platforms)
        except Exception as e:
            self.state = SessionState.FAILED
            self.error = str(e) or "Analysis failed."
            logger.error(f"Analysis failed for {url}: {self.error}")
            return None

        session = self.on_analysis_complete(url, response)

        self._progress("Generating platform visuals...")
        outcomes = list(self.generate_images(session.id, response.concepts))
        succeeded = sum(1 for o in outcomes if o.ok)
        logger.info(f"Session {session.id}: {succeeded}/{len(response.concepts)} image(s) generated")

        if self.active_id != session.id:
            return self.store.get(session.id)
        self.state = SessionState.READY
        return self.active_session()

    async def run_async(self, url: str, goal: str, platforms: Sequence[str]) -> Optional[Session]:
        """submit() in a worker thread so the caller's event loop stays responsive."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.submit, url, goal, list(platforms))

    def on_analysis_complete(self, url: str, response: AnalysisResponse) -> Session:
        """Create the stub session, archive it and make it active."""
        self.active_id = new_session_id()
        self.url = url
        self.result = response
        self.images = {}
        self.error = None
        self.state = SessionState.AWAITING_IMAGES

        session = self.active_session()
        self.store.upsert(session)
        logger.info(f"Archived stub session {session.id} for {url}")
        return session

    def generate_images(self, session_id: str, concepts: Sequence[ImageConcept]) -> Iterator[ImageOutcome]:
        """
        Request one image per concept, in order, applying each outcome as it lands.

        Stops issuing requests once `session_id` is no longer the active session.
        """
        for concept in concepts:
            if self.active_id != session_id:
                logger.info(f"Session {session_id} is no longer active; stopping image generation")
                return

            self._progress(f"Creating for {concept.platform}...")
            try:
                image = self.image_generator.generate(concept)
            except Exception as e:
                outcome = ImageOutcome(session_id, concept.id, error=e)
                self.on_image_failed(session_id, concept.id, e)
            else:
                outcome = ImageOutcome(session_id, concept.id, image=image)
                self.on_image_arrived(session_id, concept.id, image)
            yield outcome

    def on_image_arrived(self, session_id: str, concept_id: str, image: str) -> bool:
        """Merge one image into the active session and re-archive it."""
        if session_id != self.active_id:
            logger.info(f"Discarding late image for {concept_id} from inactive session {session_id}")
            return False
        self.images = {**self.images, concept_id: image}
        self._archive_active()
        return True

    def on_image_failed(self, session_id: str, concept_id: str, error: Exception) -> None:
        logger.warning(f"Image generation failed for concept {concept_id} (session {session_id}): {error}")

    # ── Archive ───────────────────────────────────────────────────────────────

    def activate(self, session: Session) -> None:
        """Reopen an archived session as-is, without calling either client."""
        self.active_id = session.id
        self.url = session.url
        self.result = session.data
        self.images = dict(session.images)
        self.error = None
        self.state = SessionState.READY

    # ── Keyword edits ─────────────────────────────────────────────────────────

    def on_keywords_edited(self, keywords: Sequence[str]) -> List[str]:
        """Replace the active session's keywords and re-archive it."""
        if self.active_id is None or self.result is None:
            raise NoActiveSessionError("No active session to edit")

        unique: List[str] = []
        for kw in keywords:
            if kw and kw not in unique:
                unique.append(kw)

        self.result = self.result.with_keywords(unique)
        self._archive_active()
        return list(unique)

    def add_keyword(self, raw: str) -> bool:
        """Append a keyword (leading '#' stripped). Returns False for empty or duplicate."""
        if self.active_id is None or self.result is None:
            raise NoActiveSessionError("No active session to edit")
        kw = normalize_keyword(raw)
        current = self.keywords
        if not kw or kw in current:
            return False
        self.on_keywords_edited(current + [kw])
        return True

    def remove_keyword(self, keyword: str) -> bool:
        """Remove a keyword (leading '#' stripped). Returns False when it was not present."""
        if self.active_id is None or self.result is None:
            raise NoActiveSessionError("No active session to edit")
        kw = normalize_keyword(keyword)
        current = self.keywords
        if not kw or kw not in current:
            return False
        self.on_keywords_edited([k for k in current if k != kw])
        return True
