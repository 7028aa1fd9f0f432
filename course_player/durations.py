"""Per-slide playback durations, in frames."""
from __future__ import annotations

import math
from typing import Dict, Iterable

from config_loader import PlaybackSettings
from logging_utils import get_logger

from .models import Slide

logger = get_logger(__name__)


def estimate_frames(slide: Slide, settings: PlaybackSettings) -> int:
    """Return how many frames a slide should stay on screen.

    The caption end wins when speech-to-text timings exist; otherwise the
    narration word count is turned into a reading time, floored at
    ``min_narration_seconds``; otherwise ``default_slide_seconds`` applies.
    """
    fps = settings.fps

    caption_end = slide.caption.end_seconds if slide.caption is not None else None
    if caption_end is not None:
        frames = max(1, math.ceil(caption_end * fps))
        logger.debug(
            "Slide %s: caption duration %.2fs (%d frames)", slide.slide_id, caption_end, frames
        )
        return frames

    if slide.narration is not None and slide.narration.full_text:
        word_count = slide.narration.word_count
        estimated_seconds = math.ceil(word_count / settings.words_per_second)
        frames = max(settings.min_narration_frames, math.ceil(estimated_seconds * fps), 1)
        logger.debug(
            "Slide %s: estimated %ds from %d words (%d frames)",
            slide.slide_id,
            estimated_seconds,
            word_count,
            frames,
        )
        return frames

    logger.debug("Slide %s: no caption or narration, using default", slide.slide_id)
    return settings.default_slide_frames


def build_duration_map(slides: Iterable[Slide], settings: PlaybackSettings) -> Dict[str, int]:
    durations: Dict[str, int] = {}
    for slide in slides:
        if slide.slide_id in durations:
            logger.warning("Duplicate slide id %s; keeping first duration", slide.slide_id)
            continue
        durations[slide.slide_id] = estimate_frames(slide, settings)
    return durations
