from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from PIL import Image

from config_loader import PlaybackSettings
from course_player.captions import (
    CaptionOverlayRenderer,
    CaptionStyle,
    timeline_subtitles,
    write_ass_subtitles,
)
from course_player.models import Caption, CaptionChunk, Slide
from course_player.timeline import build_timeline


def _timeline():
    first = Slide(
        slide_id="A",
        caption=Caption(chunks=(CaptionChunk("Hello", 0.0, 1.5), CaptionChunk("world", 1.5, 9.0))),
    )
    second = Slide(
        slide_id="B",
        caption=Caption(chunks=(CaptionChunk("Again", 0.5, 1.0), CaptionChunk("open", 1.0, None))),
    )
    return build_timeline([first, second], {"A": 90, "B": 60}, PlaybackSettings(fps=30))


def test_subtitles_are_shifted_and_clipped_to_placements() -> None:
    lines = timeline_subtitles(_timeline())
    assert [(line.text, line.start, line.end) for line in lines] == [
        ("Hello", 0.0, 1.5),
        ("world", 1.5, 3.0),
        ("Again", 4.5, 5.0),
    ]
    assert [line.index for line in lines] == [1, 2, 3]


def test_write_ass_subtitles(tmp_path: Path) -> None:
    output = write_ass_subtitles(
        lines=timeline_subtitles(_timeline()),
        output_path=tmp_path / "sub" / "captions.ass",
        style=CaptionStyle(),
        resolution=(1280, 720),
    )
    text = output.read_text(encoding="utf-8")
    assert "PlayResX: 1280" in text
    assert "Dialogue: 0,0:00:04.50,0:00:05.00,Default,,0,0,0,,Again" in text
    assert text.count("Dialogue:") == 3


def test_overlay_draws_band_near_bottom(tmp_path: Path) -> None:
    renderer = CaptionOverlayRenderer(size=(640, 360))
    image = renderer.render("A caption that is long enough to wrap across several lines of text")

    assert image.size == (640, 360)
    assert image.mode == "RGBA"
    alpha = image.getchannel("A")
    assert alpha.getpixel((320, 360 - 60 - 2)) > 0
    assert alpha.getpixel((320, 10)) == 0
    assert alpha.getpixel((5, 360 - 62)) == 0

    path = renderer.save("short", tmp_path / "overlay.png")
    assert Image.open(path).size == (640, 360)


def test_blank_text_renders_transparent_frame() -> None:
    image = CaptionOverlayRenderer(size=(64, 36)).render("   ")
    assert image.getchannel("A").getbbox() is None


def test_style_from_config_parses_colors_and_falls_back() -> None:
    style = CaptionStyle.from_config({"band_color": "#11223380", "font_size": "bad", "max_width_ratio": 3})
    assert style.band_color == (0x11, 0x22, 0x33, 0x80)
    assert style.font_size == 24
    assert style.max_width_ratio == 1.0
    assert CaptionStyle.from_config(None) == CaptionStyle()
