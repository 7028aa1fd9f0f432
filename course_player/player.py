"""Frame-driven playback of a slide timeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple

from config_loader import PlaybackSettings
from logging_utils import get_logger

from .bridge import DocumentChannel, EmbeddedViewport, RendererChannel, SlideDocument
from .models import Slide
from .reveal import RevealStep, caption_at, due_steps, plan_reveals
from .timeline import Placement, Timeline, build_timeline

logger = get_logger(__name__)

ChannelFactory = Callable[[Slide], RendererChannel]


def _document_channel(slide: Slide) -> RendererChannel:
    return DocumentChannel(SlideDocument(slide.html))


@dataclass(frozen=True)
class AudioCue:
    url: str
    position: float


@dataclass(frozen=True)
class FrameState:
    frame: int
    seconds: float
    placement: Optional[Placement] = None
    slide_elapsed: float = 0.0
    caption_text: Optional[str] = None
    audio: Optional[AudioCue] = None
    revealed: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def slide_id(self) -> Optional[str]:
        return self.placement.slide.slide_id if self.placement else None

    @property
    def is_gap(self) -> bool:
        return self.placement is None

    def to_dict(self) -> Dict[str, object]:
        return {
            "frame": self.frame,
            "seconds": round(self.seconds, 3),
            "slide_id": self.slide_id,
            "slide_elapsed": round(self.slide_elapsed, 3),
            "caption": self.caption_text,
            "audio": (
                {"url": self.audio.url, "position": round(self.audio.position, 3)}
                if self.audio
                else None
            ),
            "revealed": list(self.revealed),
        }


class CompositionPlayer:
    """Evaluate a timeline one frame at a time.

    Reveal state is rebuilt from ``RESET`` on every evaluation, so seeking
    to any frame in any order yields the same messages as playing up to it.
    """

    def __init__(
        self,
        timeline: Timeline,
        *,
        channel_factory: Optional[ChannelFactory] = None,
        auto_load: bool = False,
    ) -> None:
        self.timeline = timeline
        self.fps = timeline.fps
        self.channel_factory = channel_factory or _document_channel
        self.auto_load = auto_load
        self.viewport: Optional[EmbeddedViewport] = None
        self._mounted: Optional[Placement] = None
        self._plans: Dict[int, Tuple[RevealStep, ...]] = {}

    def _plan_for(self, placement: Placement) -> Tuple[RevealStep, ...]:
        plan = self._plans.get(placement.start)
        if plan is None:
            plan = plan_reveals(placement.slide.reveal_data, placement.slide.caption_chunks)
            self._plans[placement.start] = plan
        return plan

    def _mount(self, placement: Placement) -> EmbeddedViewport:
        if self._mounted is not placement or self.viewport is None:
            logger.debug("Mounting slide %s at frame %d", placement.slide.slide_id, placement.start)
            self.viewport = EmbeddedViewport(placement.slide, self.channel_factory(placement.slide))
            self._mounted = placement
            if self.auto_load:
                self.viewport.mark_loaded()
        return self.viewport

    def _unmount(self) -> None:
        self.viewport = None
        self._mounted = None

    def viewport_loaded(self) -> None:
        """Host callback for the embedded document's load event."""
        if self.viewport is not None:
            self.viewport.mark_loaded()

    def render_frame(self, frame: int) -> FrameState:
        seconds = frame / self.fps
        placement = self.timeline.placement_at(frame)
        if placement is None:
            self._unmount()
            return FrameState(frame=frame, seconds=seconds)

        viewport = self._mount(placement)
        slide = placement.slide
        elapsed = (frame - placement.start) / self.fps

        revealed: Tuple[str, ...] = ()
        if viewport.loaded:
            viewport.reset()
            due = due_steps(self._plan_for(placement), elapsed)
            for step in due:
                viewport.reveal(step.step_id)
            revealed = tuple(step.step_id for step in due)

        chunk = caption_at(slide.caption_chunks, elapsed)
        audio = AudioCue(url=slide.audio_file_url, position=elapsed) if slide.audio_file_url else None

        return FrameState(
            frame=frame,
            seconds=seconds,
            placement=placement,
            slide_elapsed=elapsed,
            caption_text=chunk.text if chunk else None,
            audio=audio,
            revealed=revealed,
        )

    def seek(self, frame: int) -> FrameState:
        return self.render_frame(frame)

    def play(self, start: int = 0, stop: Optional[int] = None) -> Iterator[FrameState]:
        end = self.timeline.composition_frames if stop is None else stop
        for frame in range(start, end):
            yield self.render_frame(frame)


class CourseComposition:
    """Entry point for a host UI: slides + duration map in, playable composition out."""

    def __init__(
        self,
        slides: Sequence[Slide],
        durations_by_slide_id: Mapping[str, int],
        settings: Optional[PlaybackSettings] = None,
    ) -> None:
        self.settings = settings or PlaybackSettings()
        self.slides = tuple(slides)
        self.timeline = build_timeline(self.slides, durations_by_slide_id, self.settings)

    @property
    def fps(self) -> int:
        return self.settings.fps

    @property
    def width(self) -> int:
        return self.settings.width

    @property
    def height(self) -> int:
        return self.settings.height

    @property
    def duration_in_frames(self) -> int:
        return self.timeline.composition_frames

    def player(
        self,
        *,
        channel_factory: Optional[ChannelFactory] = None,
        auto_load: bool = False,
    ) -> CompositionPlayer:
        return CompositionPlayer(self.timeline, channel_factory=channel_factory, auto_load=auto_load)

    def display_size(
        self, max_width: Optional[int] = None, max_height: Optional[int] = None
    ) -> Tuple[int, int]:
        """Largest size within the bounds that keeps the composition aspect ratio."""
        scales = []
        if max_width is not None:
            scales.append(max_width / self.width)
        if max_height is not None:
            scales.append(max_height / self.height)
        scale = min(scales) if scales else 1.0
        width = max(1, int(round(self.width * scale)))
        height = max(1, int(round(self.height * scale)))
        return width, height
