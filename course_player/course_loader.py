from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from logging_utils import get_logger

from .models import Caption, CaptionChunk, Chapter, Course, CourseLayout, Narration, Slide

logger = get_logger(__name__)


def _ensure_str_list(name: str, values: Iterable[Any]) -> Tuple[str, ...]:
    normalized: List[str] = []
    for idx, value in enumerate(values, start=1):
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"{name} must contain strings only (item {idx})")
        stripped = value.strip()
        if stripped:
            normalized.append(stripped)
    return tuple(normalized)


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_timestamp(raw: Any, *, where: str) -> Tuple[float, Optional[float]]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError(f"{where}.timestamp must be a [start, end] array")

    def _extract(value: Any, label: str) -> Optional[float]:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{where}.timestamp {label} must be numeric")

    start = _extract(raw[0], "start")
    end = _extract(raw[1], "end") if len(raw) > 1 else None
    return (start if start is not None else 0.0), end


def _warn_on_disorder(slide_id: str, chunks: Tuple[CaptionChunk, ...]) -> None:
    previous_end: Optional[float] = None
    for idx, chunk in enumerate(chunks):
        if chunk.end is not None and chunk.end < chunk.start:
            logger.warning(
                "Slide %s caption chunk %d ends before it starts (%.2f < %.2f)",
                slide_id,
                idx,
                chunk.end,
                chunk.start,
            )
        if previous_end is not None and chunk.start < previous_end:
            logger.warning(
                "Slide %s caption chunk %d overlaps or precedes the previous chunk", slide_id, idx
            )
        previous_end = chunk.end if chunk.end is not None else chunk.start


def parse_caption(raw: Any, *, slide_id: str) -> Optional[Caption]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Slide {slide_id} caption must be an object if set")

    chunks_raw = raw.get("chunks") or []
    if not isinstance(chunks_raw, (list, tuple)):
        raise ValueError(f"Slide {slide_id} caption.chunks must be an array")

    chunks: List[CaptionChunk] = []
    for idx, chunk_raw in enumerate(chunks_raw):
        where = f"Slide {slide_id} caption.chunks[{idx}]"
        if not isinstance(chunk_raw, dict):
            raise ValueError(f"{where} must be an object")
        start, end = _parse_timestamp(chunk_raw.get("timestamp"), where=where)
        text = chunk_raw.get("text")
        chunks.append(
            CaptionChunk(text=str(text).strip() if text is not None else "", start=start, end=end)
        )

    caption = Caption(chunks=tuple(chunks), text=_optional_str(raw.get("text")))
    _warn_on_disorder(slide_id, caption.chunks)
    if not caption.chunks and caption.text is None:
        return None
    return caption


def parse_narration(raw: Any) -> Optional[Narration]:
    if isinstance(raw, dict):
        raw = raw.get("fullText")
    if isinstance(raw, str) and raw:
        return Narration(full_text=raw)
    return None


def parse_slide(raw: Dict[str, Any], *, index: int) -> Slide:
    slide_id = raw.get("slideId")
    if not isinstance(slide_id, str) or not slide_id.strip():
        raise ValueError(f"Slide at index {index} must include non-empty 'slideId'")
    slide_id = slide_id.strip()

    html = raw.get("html")
    if html is not None and not isinstance(html, str):
        raise ValueError(f"Slide {slide_id} html must be a string if set")

    reveal_raw = raw.get("revealData")
    if reveal_raw is None:
        reveal_data: Tuple[str, ...] = ()
    elif isinstance(reveal_raw, (list, tuple)):
        reveal_data = _ensure_str_list(f"Slide {slide_id} revealData", reveal_raw)
    else:
        raise ValueError(f"Slide {slide_id} revealData must be an array of strings")

    slide_index_raw = raw.get("slideIndex", index)
    try:
        slide_index = int(slide_index_raw)
    except (TypeError, ValueError):
        raise ValueError(f"Slide {slide_id} slideIndex must be an integer")

    chapter_id = raw.get("chapterId")
    return Slide(
        slide_id=slide_id,
        html=html or "",
        audio_file_url=_optional_str(raw.get("audioFileUrl")),
        reveal_data=reveal_data,
        caption=parse_caption(raw.get("caption"), slide_id=slide_id),
        narration=parse_narration(raw.get("narration")),
        chapter_id=str(chapter_id) if chapter_id is not None else None,
        slide_index=slide_index,
        audio_file_name=_optional_str(raw.get("audioFileName")),
    )


def parse_slides(raw_slides: Any) -> Tuple[Slide, ...]:
    if raw_slides is None:
        return ()
    if not isinstance(raw_slides, list):
        raise ValueError("'chapterContentSlides' must be an array")
    slides: List[Slide] = []
    for idx, slide_raw in enumerate(raw_slides):
        if not isinstance(slide_raw, dict):
            raise ValueError(f"Slide at index {idx} must be an object")
        slides.append(parse_slide(slide_raw, index=idx))
    return tuple(slides)


def _parse_chapter(raw: Dict[str, Any], *, index: int) -> Chapter:
    chapter_id = raw.get("chapterId")
    if not isinstance(chapter_id, str) or not chapter_id.strip():
        raise ValueError(f"Chapter at index {index} must include non-empty 'chapterId'")
    title = _optional_str(raw.get("chapterTitle")) or chapter_id.strip()
    sub_raw = raw.get("subContent") or []
    if not isinstance(sub_raw, (list, tuple)):
        raise ValueError(f"Chapter {chapter_id} subContent must be an array of strings")
    return Chapter(
        chapter_id=chapter_id.strip(),
        title=title,
        sub_content=_ensure_str_list(f"Chapter {chapter_id} subContent", sub_raw),
    )


def _parse_layout(raw: Any, *, fallback_name: str) -> CourseLayout:
    if raw is None:
        return CourseLayout(course_name=fallback_name)
    if not isinstance(raw, dict):
        raise ValueError("'courseLayout' must be an object")

    chapters_raw = raw.get("chapters") or []
    if not isinstance(chapters_raw, list):
        raise ValueError("courseLayout.chapters must be an array")
    chapters: List[Chapter] = []
    for idx, chapter_raw in enumerate(chapters_raw):
        if not isinstance(chapter_raw, dict):
            raise ValueError(f"Chapter at index {idx} must be an object")
        chapters.append(_parse_chapter(chapter_raw, index=idx))

    total_raw = raw.get("totalChapters", len(chapters))
    try:
        total_chapters = int(total_raw)
    except (TypeError, ValueError):
        logger.warning("Invalid totalChapters=%r; using chapter count", total_raw)
        total_chapters = len(chapters)

    return CourseLayout(
        course_name=_optional_str(raw.get("courseName")) or fallback_name,
        chapters=tuple(chapters),
        description=_optional_str(raw.get("courseDescription")),
        level=_optional_str(raw.get("level")),
        total_chapters=total_chapters,
    )


def parse_course(raw: Any) -> Course:
    if not isinstance(raw, dict):
        raise ValueError("Course root must be an object")

    course_id = raw.get("courseId")
    if not isinstance(course_id, str) or not course_id.strip():
        raise ValueError("Root 'courseId' field is required")

    course_name = _optional_str(raw.get("courseName")) or course_id.strip()
    layout = _parse_layout(raw.get("courseLayout"), fallback_name=course_name)
    slides = parse_slides(raw.get("chapterContentSlides"))

    known = {chapter.chapter_id for chapter in layout.chapters}
    orphans = sorted({s.chapter_id or "" for s in slides if s.chapter_id not in known})
    if orphans:
        logger.warning("Slides reference unknown chapters: %s", ", ".join(orphans))

    return Course(
        course_id=course_id.strip(),
        course_name=course_name,
        layout=layout,
        slides=slides,
    )


def load_course(path: Path | str) -> Course:
    course_path = Path(path).expanduser().resolve()
    if not course_path.exists():
        raise FileNotFoundError(f"Course file not found: {course_path}")

    with course_path.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to parse JSON ({exc})") from exc

    course = parse_course(raw)
    logger.info(
        "Loaded course: %s (%d chapters, %d slides)",
        course.course_name,
        len(course.layout.chapters),
        len(course.slides),
    )
    return course
