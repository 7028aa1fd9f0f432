from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config_loader import PlaybackSettings
from course_player.course_loader import load_course, parse_course, parse_slide
from course_player.durations import estimate_frames
from course_player.models import Slide


def _course_payload() -> dict:
    return {
        "courseId": "c-1",
        "courseName": "Intro to Rust",
        "courseLayout": {
            "courseName": "Intro to Rust",
            "courseDescription": "Ownership and borrowing",
            "level": "Beginner",
            "totalChapters": 2,
            "chapters": [
                {"chapterId": "ch-1", "chapterTitle": "Ownership", "subContent": ["Moves", " ", "Copies"]},
                {"chapterId": "ch-2", "chapterTitle": "Borrowing", "subContent": []},
            ],
        },
        "chapterContentSlides": [
            {
                "slideId": "ch-1-01",
                "chapterId": "ch-1",
                "slideIndex": 1,
                "html": "<body><p class='reveal' data-reveal='r1'>x</p></body>",
                "audioFileUrl": "https://cdn.example.com/ch-1-01.mp3",
                "audioFileName": "ch-1-01",
                "narration": {"fullText": "Values have a single owner."},
                "revealData": ["r1"],
                "caption": {
                    "text": "Values have a single owner.",
                    "chunks": [{"text": "Values have a single owner.", "timestamp": [0, 2.4]}],
                },
            },
            {
                "slideId": "ch-1-02",
                "chapterId": "ch-1",
                "slideIndex": 2,
                "html": None,
                "audioFileUrl": None,
                "narration": "Plain string narration",
                "revealData": None,
                "caption": None,
            },
        ],
    }


def test_parse_course_builds_value_types() -> None:
    course = parse_course(_course_payload())

    assert course.course_id == "c-1"
    assert [c.chapter_id for c in course.layout.chapters] == ["ch-1", "ch-2"]
    assert course.layout.chapters[0].sub_content == ("Moves", "Copies")
    assert course.layout.level == "Beginner"

    first, second = course.slides_for_chapter("ch-1")
    assert first.reveal_data == ("r1",)
    assert first.caption.end_seconds == 2.4
    assert first.narration.word_count == 5
    assert first.has_audio

    assert second.html == ""
    assert second.caption is None
    assert second.caption_chunks == ()
    assert second.reveal_data == ()
    assert second.audio_file_url is None
    assert second.narration_text == "Plain string narration"
    assert course.slides_for_chapter("ch-2") == ()


def test_open_timestamp_end_is_kept_as_none() -> None:
    slide = parse_slide(
        {"slideId": "s", "caption": {"chunks": [{"text": "a", "timestamp": [1.0, None]}]}},
        index=0,
    )
    assert slide.caption.chunks[0].end is None
    assert slide.caption.end_seconds is None


def test_empty_caption_is_absent() -> None:
    slide = parse_slide({"slideId": "s", "caption": {"chunks": []}}, index=0)
    assert slide.caption is None


def test_unordered_captions_are_kept_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    slide = parse_slide(
        {
            "slideId": "s",
            "caption": {"chunks": [{"text": "b", "timestamp": [3, 4]}, {"text": "a", "timestamp": [1, 2]}]},
        },
        index=0,
    )
    assert [c.text for c in slide.caption.chunks] == ["b", "a"]
    assert "overlaps or precedes" in caplog.text


def test_whitespace_narration_is_kept_and_timed_as_narration() -> None:
    slide = parse_slide({"slideId": "s", "narration": {"fullText": "   "}}, index=0)
    assert slide.narration is not None
    assert slide.narration.word_count == 0
    assert estimate_frames(slide, PlaybackSettings(fps=30)) == 90
    assert parse_slide({"slideId": "s", "narration": ""}, index=0).narration is None


def test_slide_reveal_data_has_a_single_absent_state() -> None:
    assert Slide(slide_id="s", reveal_data=None).reveal_data == ()
    assert Slide(slide_id="s", reveal_data=["r1", "r2"]).reveal_data == ("r1", "r2")
    with pytest.raises(ValueError, match="sequence of strings"):
        Slide(slide_id="s", reveal_data="r1")
    with pytest.raises(ValueError, match="strings only"):
        Slide(slide_id="s", reveal_data=["r1", 2])


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"html": "<p/>"}, "slideId"),
        ({"slideId": "s", "revealData": "r1"}, "revealData"),
        ({"slideId": "s", "revealData": ["r1", 2]}, "strings only"),
        ({"slideId": "s", "caption": {"chunks": [{"text": "a"}]}}, "timestamp"),
        ({"slideId": "s", "caption": {"chunks": [{"text": "a", "timestamp": ["x", 1]}]}}, "numeric"),
        ({"slideId": "s", "html": 5}, "html"),
    ],
)
def test_malformed_slides_raise(raw: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        parse_slide(raw, index=0)


def test_course_requires_id() -> None:
    payload = _course_payload()
    payload.pop("courseId")
    with pytest.raises(ValueError, match="courseId"):
        parse_course(payload)


def test_load_course_from_file(tmp_path: Path) -> None:
    path = tmp_path / "course.json"
    path.write_text(json.dumps(_course_payload()), encoding="utf-8")
    course = load_course(path)
    assert len(course.slides) == 2


def test_load_course_reports_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "course.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="Failed to parse JSON"):
        load_course(path)
    with pytest.raises(FileNotFoundError):
        load_course(tmp_path / "missing.json")
