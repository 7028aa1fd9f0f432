"""Caption overlay rendering and chapter subtitle export."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from logging_utils import get_logger

from .timeline import Timeline

logger = get_logger(__name__)


def _parse_rgba(value: Any, default: Tuple[int, int, int, int]) -> Tuple[int, int, int, int]:
    if not isinstance(value, str):
        return default
    text = value.strip().lstrip("#")
    if len(text) == 6:
        text += "FF"
    if len(text) != 8:
        return default
    try:
        return tuple(int(text[i : i + 2], 16) for i in (0, 2, 4, 6))  # type: ignore[return-value]
    except ValueError:
        return default


@dataclass(frozen=True)
class CaptionStyle:
    font_path: Optional[str] = None
    font_size: int = 24
    text_color: Tuple[int, int, int, int] = (255, 255, 255, 255)
    band_color: Tuple[int, int, int, int] = (0, 0, 0, 204)
    padding_x: int = 24
    padding_y: int = 12
    radius: int = 8
    margin_bottom: int = 60
    max_width_ratio: float = 0.8
    line_height: float = 1.4

    @classmethod
    def from_config(cls, raw: Dict[str, Any] | None) -> "CaptionStyle":
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()

        def _int(key: str, default: int) -> int:
            try:
                return max(0, int(raw.get(key, default)))
            except (TypeError, ValueError):
                return default

        def _float(key: str, default: float) -> float:
            try:
                return float(raw.get(key, default))
            except (TypeError, ValueError):
                return default

        font_path = raw.get("font_path")
        return cls(
            font_path=str(font_path) if font_path else None,
            font_size=max(1, _int("font_size", defaults.font_size)),
            text_color=_parse_rgba(raw.get("text_color"), defaults.text_color),
            band_color=_parse_rgba(raw.get("band_color"), defaults.band_color),
            padding_x=_int("padding_x", defaults.padding_x),
            padding_y=_int("padding_y", defaults.padding_y),
            radius=_int("radius", defaults.radius),
            margin_bottom=_int("margin_bottom", defaults.margin_bottom),
            max_width_ratio=min(1.0, max(0.1, _float("max_width_ratio", defaults.max_width_ratio))),
            line_height=max(1.0, _float("line_height", defaults.line_height)),
        )


@dataclass
class CaptionOverlayRenderer:
    """Draw the caption band shown over a playing slide."""

    size: Tuple[int, int]
    style: CaptionStyle = field(default_factory=CaptionStyle)
    _font: Optional[ImageFont.ImageFont] = None

    def render(self, text: str) -> Image.Image:
        width, height = self.size
        image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        if not text.strip():
            return image

        font = self._get_font()
        draw = ImageDraw.Draw(image, "RGBA")
        max_text_width = int(width * self.style.max_width_ratio) - self.style.padding_x * 2
        lines = self._wrap(draw, font, text, max(max_text_width, 1))

        line_step = int(round(self.style.font_size * self.style.line_height))
        widths = [self._text_width(draw, font, line) for line in lines]
        band_width = max(widths) + self.style.padding_x * 2
        band_height = line_step * len(lines) + self.style.padding_y * 2

        left = (width - band_width) // 2
        bottom = height - self.style.margin_bottom
        top = bottom - band_height
        draw.rounded_rectangle(
            [(left, top), (left + band_width, bottom)],
            radius=self.style.radius,
            fill=self.style.band_color,
        )

        y = top + self.style.padding_y
        for line, line_width in zip(lines, widths):
            x = (width - line_width) // 2
            draw.text((x, y), line, font=font, fill=self.style.text_color)
            y += line_step
        return image

    def save(self, text: str, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.render(text).save(output_path, format="PNG")
        return output_path

    def _get_font(self) -> ImageFont.ImageFont:
        if self._font is not None:
            return self._font
        font: Optional[ImageFont.ImageFont] = None
        candidates = [self.style.font_path] if self.style.font_path else []
        candidates += ["Arial.ttf", "DejaVuSans.ttf"]
        for candidate in candidates:
            try:
                font = ImageFont.truetype(str(candidate), size=self.style.font_size)
                break
            except OSError:
                continue
        if font is None:
            logger.debug("No TrueType font found; using Pillow default font")
            font = ImageFont.load_default()
        self._font = font
        return font

    @staticmethod
    def _text_width(draw: ImageDraw.ImageDraw, font: ImageFont.ImageFont, text: str) -> int:
        left, _, right, _ = draw.textbbox((0, 0), text, font=font)
        return int(right - left)

    def _wrap(
        self, draw: ImageDraw.ImageDraw, font: ImageFont.ImageFont, text: str, max_width: int
    ) -> List[str]:
        lines: List[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}" if current else word
            if current and self._text_width(draw, font, candidate) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            lines.append(current)
        return lines


@dataclass(frozen=True)
class SubtitleLine:
    index: int
    start: float
    end: float
    text: str


def timeline_subtitles(timeline: Timeline) -> List[SubtitleLine]:
    """Caption chunks of every placement shifted onto the chapter clock.

    Chunks are cut at the end of their placement. Open-ended chunks are
    skipped because the player never shows them.
    """
    lines: List[SubtitleLine] = []
    for placement in timeline.placements:
        offset = placement.start / timeline.fps
        limit = placement.duration / timeline.fps
        for chunk in placement.slide.caption_chunks:
            if not chunk.text or chunk.end is None or chunk.start >= limit:
                continue
            end = min(chunk.end, limit)
            if end <= chunk.start:
                continue
            lines.append(
                SubtitleLine(
                    index=len(lines) + 1,
                    start=offset + chunk.start,
                    end=offset + end,
                    text=chunk.text,
                )
            )
    return lines


def _format_timestamp(seconds: float) -> str:
    total_centiseconds = int(round(seconds * 100))
    cs = total_centiseconds % 100
    total_seconds = total_centiseconds // 100
    s = total_seconds % 60
    total_minutes = total_seconds // 60
    m = total_minutes % 60
    h = total_minutes // 60
    return f"{h:d}:{m:02d}:{s:02d}.{cs:02d}"


def _escape_ass_text(text: str) -> str:
    return text.replace("\\", r"\\").replace("\n", r"\N").replace("{", r"\{").replace("}", r"\}")


def write_ass_subtitles(
    *,
    lines: Sequence[SubtitleLine],
    output_path: Path,
    style: CaptionStyle,
    resolution: Tuple[int, int],
) -> Path:
    width, height = resolution
    font_name = Path(style.font_path).stem if style.font_path else "Arial"
    header = [
        "[Script Info]",
        "ScriptType: v4.00+",
        f"PlayResX: {width}",
        f"PlayResY: {height}",
        "WrapStyle: 0",
        "ScaledBorderAndShadow: yes",
        "",
        "[V4+ Styles]",
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
        "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
        "Alignment, MarginL, MarginR, MarginV, Encoding",
        f"Style: Default,{font_name},{style.font_size},{_ass_colour(style.text_color)},"
        f"{_ass_colour(style.text_color)},&H00000000,{_ass_colour(style.band_color)},"
        f"0,0,0,0,100,100,0,0,3,{style.padding_y},0,2,{style.padding_x},{style.padding_x},"
        f"{style.margin_bottom},1",
        "",
        "[Events]",
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
    ]

    body: List[str] = []
    for line in lines:
        start = _format_timestamp(max(0.0, line.start))
        end = _format_timestamp(max(line.end, line.start + 0.01))
        body.append(f"Dialogue: 0,{start},{end},Default,,0,0,0,,{_escape_ass_text(line.text)}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        for entry in header + body:
            f.write(entry + "\n")
    return output_path


def _ass_colour(rgba: Tuple[int, int, int, int]) -> str:
    r, g, b, a = rgba
    return f"&H{255 - a:02X}{b:02X}{g:02X}{r:02X}"
