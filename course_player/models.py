from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class CaptionChunk:
    text: str
    start: float
    end: Optional[float] = None

    def contains(self, seconds: float) -> bool:
        if self.end is None:
            return False
        return self.start <= seconds < self.end


@dataclass(frozen=True)
class Caption:
    chunks: Tuple[CaptionChunk, ...] = field(default_factory=tuple)
    text: Optional[str] = None

    @property
    def end_seconds(self) -> Optional[float]:
        """End of the last chunk, or None when it is missing or zero."""
        if not self.chunks:
            return None
        last_end = self.chunks[-1].end
        if last_end is None or last_end <= 0:
            return None
        return last_end


@dataclass(frozen=True)
class Narration:
    full_text: str

    @property
    def word_count(self) -> int:
        return len(self.full_text.split())


@dataclass(frozen=True)
class Slide:
    slide_id: str
    html: str = ""
    audio_file_url: Optional[str] = None
    reveal_data: Tuple[str, ...] = field(default_factory=tuple)
    caption: Optional[Caption] = None
    narration: Optional[Narration] = None
    chapter_id: Optional[str] = None
    slide_index: int = 0
    audio_file_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.slide_id, str) or not self.slide_id.strip():
            raise ValueError("slide_id must be a non-empty string")
        if isinstance(self.reveal_data, str):
            raise ValueError(f"Slide {self.slide_id} reveal_data must be a sequence of strings")
        object.__setattr__(self, "reveal_data", tuple(self.reveal_data or ()))
        for idx, step_id in enumerate(self.reveal_data, start=1):
            if not isinstance(step_id, str):
                raise ValueError(
                    f"Slide {self.slide_id} reveal_data must contain strings only (item {idx})"
                )

    @property
    def caption_chunks(self) -> Tuple[CaptionChunk, ...]:
        if self.caption is None:
            return ()
        return self.caption.chunks

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_file_url)

    @property
    def narration_text(self) -> str:
        if self.narration is None:
            return ""
        return self.narration.full_text


@dataclass(frozen=True)
class Chapter:
    chapter_id: str
    title: str
    sub_content: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CourseLayout:
    course_name: str
    chapters: Tuple[Chapter, ...] = field(default_factory=tuple)
    description: Optional[str] = None
    level: Optional[str] = None
    total_chapters: int = 0


@dataclass(frozen=True)
class Course:
    course_id: str
    course_name: str
    layout: CourseLayout
    slides: Tuple[Slide, ...] = field(default_factory=tuple)

    def slides_for_chapter(self, chapter_id: str) -> Tuple[Slide, ...]:
        return tuple(slide for slide in self.slides if slide.chapter_id == chapter_id)

    def chapter(self, chapter_id: str) -> Optional[Chapter]:
        for chapter in self.layout.chapters:
            if chapter.chapter_id == chapter_id:
                return chapter
        return None
