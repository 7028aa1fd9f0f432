"""Lay slides out on a frame timeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from config_loader import PlaybackSettings
from logging_utils import get_logger

from .models import Slide

logger = get_logger(__name__)


@dataclass(frozen=True)
class Placement:
    slide: Slide
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    def contains(self, frame: int) -> bool:
        return self.start <= frame < self.end


@dataclass(frozen=True)
class Timeline:
    placements: Tuple[Placement, ...] = field(default_factory=tuple)
    fps: int = 30
    gap_frames: int = 0

    @property
    def total_frames(self) -> int:
        if not self.placements:
            return 0
        return self.placements[-1].end

    @property
    def composition_frames(self) -> int:
        """Length handed to a player; never zero."""
        return max(1, self.total_frames)

    @property
    def total_seconds(self) -> float:
        return self.total_frames / self.fps

    def placement_at(self, frame: int) -> Optional[Placement]:
        for placement in self.placements:
            if frame < placement.start:
                return None
            if placement.contains(frame):
                return placement
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "fps": self.fps,
            "gap_frames": self.gap_frames,
            "total_frames": self.total_frames,
            "total_seconds": round(self.total_seconds, 3),
            "slides": [
                {
                    "slide_id": placement.slide.slide_id,
                    "start": placement.start,
                    "duration": placement.duration,
                    "start_seconds": round(placement.start / self.fps, 3),
                    "duration_seconds": round(placement.duration / self.fps, 3),
                }
                for placement in self.placements
            ],
        }


def build_timeline(
    slides: Sequence[Slide],
    durations: Mapping[str, int],
    settings: PlaybackSettings,
) -> Timeline:
    """Place slides back to back in input order, separated by the configured gap."""
    gap_frames = settings.gap_frames
    placements: List[Placement] = []
    cursor = 0
    for slide in slides:
        duration = durations.get(slide.slide_id)
        if duration is None:
            logger.warning(
                "No duration for slide %s; using default %d frames",
                slide.slide_id,
                settings.default_slide_frames,
            )
            duration = settings.default_slide_frames
        elif duration < 1:
            logger.warning("Slide %s duration %s below one frame; clamping", slide.slide_id, duration)
            duration = 1
        placements.append(Placement(slide=slide, start=cursor, duration=int(duration)))
        cursor += int(duration) + gap_frames

    timeline = Timeline(placements=tuple(placements), fps=settings.fps, gap_frames=gap_frames)
    logger.info(
        "Timeline built with %d slides (total %d frames, %.2f seconds)",
        len(placements),
        timeline.total_frames,
        timeline.total_seconds,
    )
    return timeline
