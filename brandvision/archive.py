"""
archive.py — Bounded local archive of past analysis sessions.

The whole archive is stored as one JSON list under a single slot file,
most-recently-updated session first, at most MAX_SESSIONS entries.

A slot has a byte quota. When a write would exceed it, persist() degrades
the archive instead of failing outright:
  1. strip images from the least-recent session that still has any, retry
  2. once every session is text-only, drop the oldest session, retry
  3. give up (return False) when nothing is left to drop
"""

from __future__ import annotations

import errno
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_QUOTA_BYTES
from .models import Session

logger = logging.getLogger(__name__)

MAX_SESSIONS = 20


class QuotaExceededError(Exception):
    """The slot cannot hold the serialized archive."""


# ── Storage slot ──────────────────────────────────────────────────────────────

class FileSlot:
    """A single named storage slot backed by one file."""

    def __init__(self, path: Path, quota_bytes: int = DEFAULT_QUOTA_BYTES) -> None:
        self.path = Path(path)
        self.quota_bytes = quota_bytes

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        payload = text.encode("utf-8")
        if len(payload) > self.quota_bytes:
            raise QuotaExceededError(
                f"{len(payload)} bytes exceeds the {self.quota_bytes}-byte quota of {self.path.name}"
            )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            if e.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
                raise QuotaExceededError(str(e)) from e
            raise

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def serialize_archive(sessions: List[Session]) -> str:
    return json.dumps(
        [s.to_record() for s in sessions],
        ensure_ascii=False,
        separators=(",", ":"),
    )


# ── Store ─────────────────────────────────────────────────────────────────────

class ArchiveStore:
    """
    In-memory archive plus its persisted copy.

    `sessions` is the in-memory list. upsert() and remove_one() update it
    first and then persist; if persisting fails the list is kept and the
    slot still holds the last archive that was written successfully.
    """

    def __init__(self, slot, capacity: int = MAX_SESSIONS) -> None:
        self.slot = slot
        self.capacity = capacity
        self.sessions: List[Session] = []

    def load_all(self) -> List[Session]:
        """Read the persisted archive. Corrupt data yields an empty archive."""
        try:
            raw = self.slot.read()
        except OSError as e:
            logger.warning(f"Archive slot unreadable, starting empty: {e}")
            self.sessions = []
            return []

        if not raw:
            self.sessions = []
            return []

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError(f"expected a list, got {type(records).__name__}")
            loaded = [Session.model_validate(r) for r in records]
        except Exception as e:
            logger.error(f"Failed to parse library, discarding it: {e}")
            self.sessions = []
            return []

        unique: List[Session] = []
        seen = set()
        for session in loaded:
            if session.id not in seen:
                seen.add(session.id)
                unique.append(session)

        self.sessions = unique[: self.capacity]
        logger.debug(f"Loaded archive with {len(self.sessions)} session(s)")
        return list(self.sessions)

    def get(self, session_id: str) -> Optional[Session]:
        return next((s for s in self.sessions if s.id == session_id), None)

    def upsert(self, session: Session) -> List[Session]:
        """Put `session` at the front, replacing any entry with the same id."""
        updated = [session] + [s for s in self.sessions if s.id != session.id]
        self.sessions = updated[: self.capacity]
        self.persist(self.sessions)
        return list(self.sessions)

    def remove_one(self, session_id: str) -> List[Session]:
        if self.get(session_id) is None:
            return list(self.sessions)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        self.persist(self.sessions)
        return list(self.sessions)

    def clear_all(self) -> None:
        self.sessions = []
        try:
            self.slot.clear()
        except OSError as e:
            logger.error(f"Failed to clear archive slot: {e}")

    def persist(self, archive: List[Session]) -> bool:
        """
        Write `archive` to the slot, degrading it under quota pressure.

        Never raises. On success the in-memory archive becomes whatever was
        actually written (possibly with images stripped or sessions dropped).
        """
        pruned = list(archive)

        while True:
            try:
                self.slot.write(serialize_archive(pruned))
                break
            except QuotaExceededError as e:
                victim = _last_index_with_images(pruned)
                if victim is not None:
                    logger.warning(
                        f"Archive over quota ({e}); stripping images from session {pruned[victim].id}"
                    )
                    pruned[victim] = pruned[victim].without_images()
                    continue
                if pruned:
                    dropped = pruned.pop()
                    logger.warning(f"Archive still over quota; dropping session {dropped.id}")
                    if pruned:
                        continue
                logger.error("Archive could not be persisted; every session was dropped")
                return False
            except Exception as e:
                logger.error(f"Failed to persist archive: {e}")
                return False

        if len(pruned) != len(archive) or any(a is not b for a, b in zip(pruned, archive)):
            logger.info(f"Archive persisted in degraded form ({len(pruned)} session(s))")
        self.sessions = pruned
        return True


def _last_index_with_images(sessions: List[Session]) -> Optional[int]:
    for i in range(len(sessions) - 1, -1, -1):
        if sessions[i].has_images():
            return i
    return None
