"""Narration audio: fetch slide assets and lay them out on the chapter timeline."""
from __future__ import annotations

import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests
from moviepy import AudioFileClip, CompositeAudioClip

from logging_utils import get_logger

from .models import Slide
from .timeline import Timeline

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(value: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", value).strip("._")
    return cleaned or "slide"


@dataclass(frozen=True)
class AudioSettings:
    retries: int = 3
    retry_backoff_base: float = 5.0
    timeout_connect: float = 5.0
    timeout_read: float = 120.0
    sample_rate: int = 44100

    @classmethod
    def from_config(cls, raw: Dict[str, Any] | None) -> "AudioSettings":
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()

        def _number(key: str, default: float) -> float:
            try:
                return float(raw.get(key, default))
            except (TypeError, ValueError):
                logger.warning("Invalid audio.%s=%r; falling back to %s", key, raw.get(key), default)
                return default

        return cls(
            retries=max(0, int(_number("retries", defaults.retries))),
            retry_backoff_base=max(0.0, _number("retry_backoff_base", defaults.retry_backoff_base)),
            timeout_connect=max(0.1, _number("timeout_connect", defaults.timeout_connect)),
            timeout_read=max(0.1, _number("timeout_read", defaults.timeout_read)),
            sample_rate=max(8000, int(_number("sample_rate", defaults.sample_rate))),
        )


class NarrationAudioFetcher:
    """Download narration assets into a local cache, retrying transient failures."""

    def __init__(self, cache_dir: Path, settings: Optional[AudioSettings] = None) -> None:
        self.cache_dir = cache_dir
        self.settings = settings or AudioSettings()
        self._session = requests.Session()

    def target_path(self, slide: Slide) -> Path:
        suffix = Path(urlparse(slide.audio_file_url or "").path).suffix or ".mp3"
        return self.cache_dir / f"{safe_name(slide.slide_id)}{suffix}"

    def fetch(self, slide: Slide) -> Optional[Path]:
        url = slide.audio_file_url
        if not url:
            return None

        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            local = Path(urlparse(url).path if scheme == "file" else url).expanduser()
            if local.exists():
                return local
            logger.warning("Narration file for slide %s not found: %s", slide.slide_id, local)
            return None

        output_path = self.target_path(slide)
        if output_path.exists():
            logger.info("Narration cache hit: %s", output_path.name)
            return output_path

        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._session.get(
                    url,
                    timeout=(self.settings.timeout_connect, self.settings.timeout_read),
                )
                status = response.status_code
                if status == 404:
                    # Missing asset; retrying will not help
                    logger.error("Narration for slide %s not found (404): %s", slide.slide_id, url)
                    return None
                if status == 429 or 500 <= status < 600:
                    raise requests.HTTPError(f"HTTP {status}")
                response.raise_for_status()
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_bytes(response.content)
                logger.info("Fetched narration for slide %s (%d bytes)", slide.slide_id, len(response.content))
                return output_path
            except requests.RequestException as exc:
                if attempt > self.settings.retries:
                    logger.error(
                        "Narration fetch for slide %s failed after %d attempts: %s",
                        slide.slide_id,
                        attempt,
                        exc,
                    )
                    return None
                wait = self.settings.retry_backoff_base * (2 ** (attempt - 1))
                wait *= random.uniform(0.8, 1.2)
                logger.warning(
                    "Narration fetch failed (attempt %d/%d): %s; retrying in %.2fs",
                    attempt,
                    self.settings.retries,
                    exc,
                    wait,
                )
                time.sleep(wait)

    def fetch_all(self, timeline: Timeline) -> Dict[str, Path]:
        paths: Dict[str, Path] = {}
        for placement in timeline.placements:
            slide = placement.slide
            if slide.slide_id in paths:
                continue
            path = self.fetch(slide)
            if path is not None:
                paths[slide.slide_id] = path
        return paths


def mix_timeline_audio(
    timeline: Timeline,
    audio_paths: Mapping[str, Path],
    output_path: Path,
    *,
    sample_rate: int = 44100,
) -> Optional[Path]:
    """Write one narration track with each slide's audio at its placement start.

    Audio longer than its placement is cut at the placement end; slides
    without audio stay silent.
    """
    fps = timeline.fps
    sources: List[AudioFileClip] = []
    placed = []
    try:
        for placement in timeline.placements:
            path = audio_paths.get(placement.slide.slide_id)
            if path is None:
                continue
            clip = AudioFileClip(str(path))
            sources.append(clip)
            limit = placement.duration / fps
            if clip.duration is not None and clip.duration > limit:
                clip = clip.subclipped(0, limit)
            placed.append(clip.with_start(placement.start / fps))

        if not placed:
            logger.info("No narration audio on this timeline; skipping mix")
            return None

        output_path.parent.mkdir(parents=True, exist_ok=True)
        mix = CompositeAudioClip(placed).with_duration(timeline.total_seconds)
        mix.write_audiofile(str(output_path), fps=sample_rate, logger=None)
        logger.info("Narration mix written: %s (%d clips)", output_path, len(placed))
        return output_path
    finally:
        for clip in sources:
            try:
                clip.close()
            except Exception:  # pragma: no cover
                pass
