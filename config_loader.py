"""Configuration loader for the course playback tooling."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

try:
    import yaml  # type: ignore
except ModuleNotFoundError as exc:  # pragma: no cover - import guard
    raise RuntimeError(
        "PyYAML is required. Please install it with `pip install pyyaml`."
    ) from exc

from logging_utils import get_logger

logger = get_logger(__name__)


def _to_float(raw: Dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid playback.%s=%r; falling back to %s", key, value, default)
        return default


def _to_int(raw: Dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid playback.%s=%r; falling back to %s", key, value, default)
        return default


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class PlaybackSettings:
    """Every timing constant the playback core relies on."""

    fps: int = 30
    default_slide_seconds: float = 6.0
    min_narration_seconds: float = 3.0
    words_per_second: float = 2.5
    inter_slide_gap_seconds: float = 1.0
    width: int = 1280
    height: int = 720

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError("playback.fps must be positive")
        if self.words_per_second <= 0:
            raise ValueError("playback.words_per_second must be positive")
        for name in ("default_slide_seconds", "min_narration_seconds", "inter_slide_gap_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"playback.{name} cannot be negative")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("playback.width and playback.height must be positive")

    @classmethod
    def from_config(cls, raw_config: Dict[str, Any] | None) -> "PlaybackSettings":
        if not isinstance(raw_config, dict):
            raw_config = {}
        defaults = cls()
        return cls(
            fps=_to_int(raw_config, "fps", defaults.fps),
            default_slide_seconds=_to_float(
                raw_config, "default_slide_seconds", defaults.default_slide_seconds
            ),
            min_narration_seconds=_to_float(
                raw_config, "min_narration_seconds", defaults.min_narration_seconds
            ),
            words_per_second=_to_float(raw_config, "words_per_second", defaults.words_per_second),
            inter_slide_gap_seconds=_to_float(
                raw_config, "inter_slide_gap_seconds", defaults.inter_slide_gap_seconds
            ),
            width=_to_int(raw_config, "width", defaults.width),
            height=_to_int(raw_config, "height", defaults.height),
        )

    @property
    def default_slide_frames(self) -> int:
        return max(1, math.ceil(self.default_slide_seconds * self.fps))

    @property
    def min_narration_frames(self) -> int:
        return math.ceil(self.min_narration_seconds * self.fps)

    @property
    def gap_frames(self) -> int:
        return round_half_up(self.inter_slide_gap_seconds * self.fps)


@dataclass
class AppConfig:
    """Wrapper around raw configuration with resolved paths."""

    raw: Dict[str, Any]
    config_path: Path
    project_root: Path
    output_dir: Path
    log_file: Path
    playback: PlaybackSettings = field(default_factory=PlaybackSettings)

    @property
    def logging_level(self) -> str:
        level = self.raw.get("logging", {}).get("level") or "INFO"
        return str(level).upper()

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}

    def to_debug_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "log_file": str(self.log_file),
            "fps": self.playback.fps,
            "resolution": [self.playback.width, self.playback.height],
        }

    def dumps(self) -> str:
        """Return a JSON string for diagnostics."""
        return json.dumps(self.to_debug_dict(), ensure_ascii=False, indent=2)


def load_config(path: Path | str, project_root: Path | None = None) -> AppConfig:
    """Load YAML config and resolve key directories."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    root = project_root.resolve() if project_root else config_path.parent

    output_cfg = raw.get("output") if isinstance(raw.get("output"), dict) else {}
    output_dir = (root / output_cfg.get("directory", "output")).resolve()
    logging_cfg = raw.get("logging") if isinstance(raw.get("logging"), dict) else {}
    log_file = (root / logging_cfg.get("file", "logs/run.log")).resolve()

    return AppConfig(
        raw=raw,
        config_path=config_path,
        project_root=root,
        output_dir=output_dir,
        log_file=log_file,
        playback=PlaybackSettings.from_config(raw.get("playback")),
    )
