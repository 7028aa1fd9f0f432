from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from config_loader import AppConfig
from logging_utils import get_logger

from .audio_track import AudioSettings, NarrationAudioFetcher, mix_timeline_audio, safe_name
from .bridge import missing_reveal_targets, prepare_slide_html
from .captions import CaptionOverlayRenderer, CaptionStyle, timeline_subtitles, write_ass_subtitles
from .durations import build_duration_map
from .models import Chapter, Course
from .player import CourseComposition

logger = get_logger(__name__)


@dataclass
class ChapterPreview:
    chapter: Chapter
    composition: Optional[CourseComposition]
    output_dir: Path
    durations: Dict[str, int] = field(default_factory=dict)
    slide_paths: List[Path] = field(default_factory=list)
    overlay_paths: List[Path] = field(default_factory=list)
    timeline_path: Optional[Path] = None
    subtitles_path: Optional[Path] = None
    audio_path: Optional[Path] = None
    missing_targets: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.composition is None


@dataclass
class PreviewResult:
    run_id: str
    output_dir: Path
    plan_path: Path
    chapters: List[ChapterPreview]


class CoursePreviewPipeline:
    """Export every chapter of a course as a playable preview bundle."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.settings = config.playback
        self.caption_style = CaptionStyle.from_config(config.section("captions"))
        self.audio_settings = AudioSettings.from_config(config.section("audio"))

    def run(
        self,
        course: Course,
        *,
        chapter_ids: Optional[Sequence[str]] = None,
        with_audio: bool = False,
        with_overlays: bool = False,
    ) -> PreviewResult:
        run_id = datetime.now(timezone.utc).strftime("preview_%Y%m%d_%H%M%S")
        run_dir = self.config.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        chapters = self._select_chapters(course, chapter_ids)
        previews: List[ChapterPreview] = []
        for index, chapter in enumerate(chapters, start=1):
            chapter_dir = run_dir / f"{index:02d}_{safe_name(chapter.chapter_id)}"
            previews.append(
                self._build_chapter(
                    course,
                    chapter,
                    chapter_dir,
                    with_audio=with_audio,
                    with_overlays=with_overlays,
                )
            )

        plan_path = run_dir / "plan.json"
        self._write_plan(plan_path, run_id, course, previews)
        logger.info("Course preview complete: %s (%d chapters)", run_dir, len(previews))
        return PreviewResult(run_id=run_id, output_dir=run_dir, plan_path=plan_path, chapters=previews)

    def _select_chapters(self, course: Course, chapter_ids: Optional[Sequence[str]]) -> List[Chapter]:
        if not chapter_ids:
            return list(course.layout.chapters)
        selected: List[Chapter] = []
        for chapter_id in chapter_ids:
            chapter = course.chapter(chapter_id)
            if chapter is None:
                logger.warning("Chapter %s not found in course %s", chapter_id, course.course_id)
                continue
            selected.append(chapter)
        return selected

    def _build_chapter(
        self,
        course: Course,
        chapter: Chapter,
        chapter_dir: Path,
        *,
        with_audio: bool,
        with_overlays: bool,
    ) -> ChapterPreview:
        slides = course.slides_for_chapter(chapter.chapter_id)
        if not slides:
            logger.info("Chapter %s has no content generated yet; skipping", chapter.chapter_id)
            return ChapterPreview(chapter=chapter, composition=None, output_dir=chapter_dir)

        chapter_dir.mkdir(parents=True, exist_ok=True)
        durations = build_duration_map(slides, self.settings)
        composition = CourseComposition(slides, durations, self.settings)
        preview = ChapterPreview(
            chapter=chapter,
            composition=composition,
            output_dir=chapter_dir,
            durations=durations,
        )

        slides_dir = chapter_dir / "slides"
        slides_dir.mkdir(parents=True, exist_ok=True)
        for slide in slides:
            slide_path = slides_dir / f"{safe_name(slide.slide_id)}.html"
            slide_path.write_text(prepare_slide_html(slide.html), encoding="utf-8")
            preview.slide_paths.append(slide_path)
            missing = missing_reveal_targets(slide)
            if missing:
                preview.missing_targets[slide.slide_id] = missing

        preview.timeline_path = chapter_dir / "timeline.json"
        preview.timeline_path.write_text(
            json.dumps(composition.timeline.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

        resolution = (self.settings.width, self.settings.height)
        subtitle_lines = timeline_subtitles(composition.timeline)
        if subtitle_lines:
            preview.subtitles_path = write_ass_subtitles(
                lines=subtitle_lines,
                output_path=chapter_dir / "captions.ass",
                style=self.caption_style,
                resolution=resolution,
            )

        if with_overlays:
            renderer = CaptionOverlayRenderer(size=resolution, style=self.caption_style)
            overlay_dir = chapter_dir / "overlays"
            for slide in slides:
                for idx, chunk in enumerate(slide.caption_chunks):
                    if not chunk.text:
                        continue
                    path = overlay_dir / f"{safe_name(slide.slide_id)}_{idx:03d}.png"
                    preview.overlay_paths.append(renderer.save(chunk.text, path))

        if with_audio:
            fetcher = NarrationAudioFetcher(chapter_dir / "audio", self.audio_settings)
            audio_paths = fetcher.fetch_all(composition.timeline)
            preview.audio_path = mix_timeline_audio(
                composition.timeline,
                audio_paths,
                chapter_dir / "narration.mp3",
                sample_rate=self.audio_settings.sample_rate,
            )

        logger.info(
            "Chapter %s: %d slides, %d frames",
            chapter.chapter_id,
            len(slides),
            composition.duration_in_frames,
        )
        return preview

    def _write_plan(
        self,
        path: Path,
        run_id: str,
        course: Course,
        previews: Sequence[ChapterPreview],
    ) -> None:
        payload: Dict[str, object] = {
            "run_id": run_id,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "course_id": course.course_id,
            "course_name": course.course_name,
            "fps": self.settings.fps,
            "resolution": [self.settings.width, self.settings.height],
            "chapters": [self._chapter_entry(preview, path.parent) for preview in previews],
        }
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def _chapter_entry(self, preview: ChapterPreview, base: Path) -> Dict[str, object]:
        entry: Dict[str, object] = {
            "chapter_id": preview.chapter.chapter_id,
            "title": preview.chapter.title,
            "sub_content": list(preview.chapter.sub_content),
        }
        if preview.composition is None:
            entry["status"] = "empty"
            return entry

        entry.update(
            {
                "status": "ready",
                "duration_in_frames": preview.composition.duration_in_frames,
                "durations_by_slide_id": dict(preview.durations),
                "timeline": self._relative(preview.timeline_path, base),
                "subtitles": self._relative(preview.subtitles_path, base),
                "narration_audio": self._relative(preview.audio_path, base),
                "slides": [self._relative(p, base) for p in preview.slide_paths],
                "overlays": [self._relative(p, base) for p in preview.overlay_paths],
                "missing_reveal_targets": {k: list(v) for k, v in preview.missing_targets.items()},
            }
        )
        return entry

    @staticmethod
    def _relative(target: Optional[Path], base: Path) -> Optional[str]:
        if target is None:
            return None
        try:
            return str(target.resolve().relative_to(base.resolve()))
        except ValueError:
            return str(target.resolve())
