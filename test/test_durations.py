from __future__ import annotations

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config_loader import PlaybackSettings
from course_player.durations import build_duration_map, estimate_frames
from course_player.models import Caption, CaptionChunk, Narration, Slide


def _caption(*spans: tuple) -> Caption:
    return Caption(chunks=tuple(CaptionChunk(text=f"c{i}", start=s, end=e) for i, (s, e) in enumerate(spans)))


def test_caption_end_wins_over_narration() -> None:
    settings = PlaybackSettings(fps=30)
    slide = Slide(
        slide_id="s1",
        caption=_caption((0.0, 2.0), (2.0, 4.51)),
        narration=Narration("one two three"),
    )
    assert estimate_frames(slide, settings) == math.ceil(4.51 * 30)


def test_tiny_caption_end_is_floored_at_one_frame() -> None:
    slide = Slide(slide_id="s1", caption=_caption((0.0, 0.001)))
    assert estimate_frames(slide, PlaybackSettings(fps=30)) == 1


def test_open_caption_end_falls_back_to_narration() -> None:
    slide = Slide(
        slide_id="s1",
        caption=_caption((0.0, 2.0), (2.0, None)),
        narration=Narration(" ".join(["word"] * 25)),
    )
    # 25 words / 2.5 wps = 10 seconds
    assert estimate_frames(slide, PlaybackSettings(fps=30)) == 300


def test_short_narration_is_floored_at_three_seconds() -> None:
    slide = Slide(slide_id="s1", narration=Narration("just   two"))
    assert estimate_frames(slide, PlaybackSettings(fps=30)) == 90


def test_narration_seconds_are_rounded_up() -> None:
    slide = Slide(slide_id="s1", narration=Narration(" ".join(["w"] * 11)))
    # ceil(11 / 2.5) = 5 seconds
    assert estimate_frames(slide, PlaybackSettings(fps=24)) == 120


def test_whitespace_only_narration_still_uses_the_narration_floor() -> None:
    slide = Slide(slide_id="s", narration=Narration("   "))
    assert estimate_frames(slide, PlaybackSettings(fps=30)) == 90


def test_default_when_nothing_is_known() -> None:
    assert estimate_frames(Slide(slide_id="s1"), PlaybackSettings(fps=30)) == 180
    assert estimate_frames(Slide(slide_id="s1"), PlaybackSettings(fps=25)) == 150


def test_settings_change_the_heuristics() -> None:
    settings = PlaybackSettings(fps=10, words_per_second=1.0, min_narration_seconds=1.0)
    slide = Slide(slide_id="s1", narration=Narration("a b"))
    assert estimate_frames(slide, settings) == 20


def test_build_duration_map_keeps_first_duplicate() -> None:
    settings = PlaybackSettings(fps=30)
    slides = [
        Slide(slide_id="a", caption=_caption((0.0, 3.0))),
        Slide(slide_id="b"),
        Slide(slide_id="a"),
    ]
    durations = build_duration_map(slides, settings)
    assert durations == {"a": 90, "b": 180}
    assert all(value >= 1 for value in durations.values())
