from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from config_loader import AppConfig, load_config
from logging_utils import configure_logging, get_logger

from .bridge import RecordingChannel, SlideDocument, missing_reveal_targets
from .course_loader import load_course
from .durations import build_duration_map
from .models import Course
from .pipeline import CoursePreviewPipeline
from .player import CourseComposition

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Course video playback and preview export")
    parser.add_argument("course", help="Path to course JSON (courseLayout + chapterContentSlides)")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration (default: config.yaml)",
    )
    parser.add_argument(
        "--output-dir",
        help="Override output directory defined in config.yaml",
    )
    parser.add_argument(
        "--chapter",
        action="append",
        dest="chapters",
        help="Only process this chapter id (repeatable)",
    )
    parser.add_argument(
        "--audio",
        action="store_true",
        help="Download narration assets and write a per-chapter narration mix",
    )
    parser.add_argument(
        "--overlays",
        action="store_true",
        help="Render caption overlay PNGs for every caption chunk",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Report reveal steps without a matching element and exit",
    )
    parser.add_argument(
        "--seek",
        action="append",
        type=int,
        metavar="FRAME",
        help="Print player state and bridge messages at FRAME for the first chapter (repeatable, in order)",
    )
    parser.add_argument(
        "--print-plan",
        action="store_true",
        help="Print generated plan.json to stdout after completion",
    )
    return parser


def _chapter_slides(course: Course, chapter_ids: Optional[Sequence[str]]):
    if chapter_ids:
        candidates = list(chapter_ids)
    else:
        candidates = [chapter.chapter_id for chapter in course.layout.chapters]
    for chapter_id in candidates:
        slides = course.slides_for_chapter(chapter_id)
        if slides:
            return chapter_id, slides
    return None, ()


def seek_trace(course: Course, config: AppConfig, frames: Sequence[int], chapter_ids=None) -> List[Dict[str, object]]:
    chapter_id, slides = _chapter_slides(course, chapter_ids)
    if not slides:
        logger.warning("No chapter with slides to play")
        return []

    settings = config.playback
    composition = CourseComposition(slides, build_duration_map(slides, settings), settings)
    player = composition.player(
        channel_factory=lambda slide: RecordingChannel(SlideDocument(slide.html)), auto_load=True
    )
    trace: List[Dict[str, object]] = []
    for frame in frames:
        state = player.seek(frame)
        entry = state.to_dict()
        entry["chapter_id"] = chapter_id
        channel = player.viewport.channel if player.viewport is not None else None
        if isinstance(channel, RecordingChannel):
            entry["messages"] = channel.drain()
            if channel.document is not None:
                entry["visible"] = list(channel.document.active_ids)
        else:
            entry["messages"] = []
        trace.append(entry)
    return trace


def check_course(course: Course) -> Dict[str, List[str]]:
    report: Dict[str, List[str]] = {}
    for slide in course.slides:
        problems: List[str] = []
        missing = missing_reveal_targets(slide)
        if missing:
            problems.append(f"reveal steps without element: {', '.join(missing)}")
        chunk_count = len(slide.caption_chunks)
        if len(slide.reveal_data) > chunk_count:
            problems.append(
                f"{len(slide.reveal_data) - chunk_count} reveal step(s) without caption timing show immediately"
            )
        if not slide.has_audio:
            problems.append("no narration audio; plays silent")
        if problems:
            report[slide.slide_id] = problems
    return report


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.output_dir:
        output_override = Path(args.output_dir).expanduser().resolve()
        output_override.mkdir(parents=True, exist_ok=True)
        config.output_dir = output_override

    configure_logging(level=config.logging_level, log_file=config.log_file)

    try:
        course = load_course(args.course)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load course %s: %s", args.course, exc)
        return 1

    if args.check:
        print(json.dumps(check_course(course), ensure_ascii=False, indent=2))
        return 0

    if args.seek:
        trace = seek_trace(course, config, args.seek, chapter_ids=args.chapters)
        print(json.dumps(trace, ensure_ascii=False, indent=2))
        return 0

    pipeline = CoursePreviewPipeline(config)
    result = pipeline.run(
        course,
        chapter_ids=args.chapters,
        with_audio=args.audio,
        with_overlays=args.overlays,
    )
    logger.info("Preview written to %s", result.output_dir)

    if args.print_plan:
        try:
            print(result.plan_path.read_text(encoding="utf-8"))
        except OSError as exc:  # pragma: no cover - user convenience
            logger.error("Failed to read plan file: %s", exc)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
