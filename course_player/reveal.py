"""Pair reveal steps with caption timings."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .models import CaptionChunk


@dataclass(frozen=True)
class RevealStep:
    step_id: str
    at: float


def plan_reveals(step_ids: Sequence[str], chunks: Sequence[CaptionChunk]) -> Tuple[RevealStep, ...]:
    """Step ``i`` fires when caption chunk ``i`` starts; steps without a chunk fire at 0."""
    plan: List[RevealStep] = []
    for idx, step_id in enumerate(step_ids):
        at = chunks[idx].start if idx < len(chunks) else 0.0
        plan.append(RevealStep(step_id=step_id, at=at))
    return tuple(plan)


def due_steps(plan: Sequence[RevealStep], elapsed: float) -> Tuple[RevealStep, ...]:
    return tuple(step for step in plan if step.at <= elapsed)


def caption_at(chunks: Sequence[CaptionChunk], elapsed: float) -> Optional[CaptionChunk]:
    for chunk in chunks:
        if chunk.contains(elapsed):
            return chunk
    return None
