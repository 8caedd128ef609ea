"""
config.py — Runtime settings read from the environment (and .env via python-dotenv).

  GEMINI_API_KEY                    required for analysis / image generation
  BRANDVISION_ARCHIVE_PATH          archive slot file (default ~/.brandvision/library.json)
  BRANDVISION_ARCHIVE_QUOTA_BYTES   byte quota of the archive slot (default 5 MiB)
  BRANDVISION_ANALYSIS_MODEL        text model (default gemini-3-pro-preview)
  BRANDVISION_IMAGE_MODEL           first image model tried (default gemini-2.5-flash-image)
  BRANDVISION_TIMEOUT_SECONDS       per-request timeout (default 120)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_ARCHIVE_PATH = Path.home() / ".brandvision" / "library.json"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
DEFAULT_ANALYSIS_MODEL = "gemini-3-pro-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_TIMEOUT_SECONDS = 120


@dataclass
class Settings:
    api_key: str = ""
    archive_path: Path = DEFAULT_ARCHIVE_PATH
    archive_quota_bytes: int = DEFAULT_QUOTA_BYTES
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _get_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings, letting a .env file fill in anything not already exported."""
    load_dotenv(env_file)

    archive_path = os.environ.get("BRANDVISION_ARCHIVE_PATH")
    return Settings(
        api_key=os.environ.get("GEMINI_API_KEY", ""),
        archive_path=Path(archive_path).expanduser() if archive_path else DEFAULT_ARCHIVE_PATH,
        archive_quota_bytes=_get_int("BRANDVISION_ARCHIVE_QUOTA_BYTES", DEFAULT_QUOTA_BYTES),
        analysis_model=os.environ.get("BRANDVISION_ANALYSIS_MODEL") or DEFAULT_ANALYSIS_MODEL,
        image_model=os.environ.get("BRANDVISION_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        timeout_seconds=_get_int("BRANDVISION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
    )
