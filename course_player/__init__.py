"""
Course video playback package.

Lays generated slides out on a frame timeline, times their progressive
reveals against narration captions, and drives the embedded slide
documents frame by frame.
"""

from __future__ import annotations

__all__ = [
    "load_course",
    "build_duration_map",
    "build_timeline",
    "CourseComposition",
    "CompositionPlayer",
    "CoursePreviewPipeline",
]

from .course_loader import load_course
from .durations import build_duration_map
from .timeline import build_timeline
from .player import CompositionPlayer, CourseComposition
from .pipeline import CoursePreviewPipeline
