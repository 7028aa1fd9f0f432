"""Bridge between the host player and a slide document rendered in an isolated viewport.

The host talks to the embedded document with two messages only:

* ``{"type": "RESET"}`` hides every reveal target.
* ``{"type": "REVEAL", "id": <step id>}`` shows the element whose
  ``data-reveal`` attribute equals the step id.

The document side is a small script injected into the slide markup by
:func:`prepare_slide_html`. Delivery is fire-and-forget; a viewport drops
anything sent before the host has seen the document finish loading.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from bs4 import BeautifulSoup

from logging_utils import get_logger

from .models import Slide

logger = get_logger(__name__)

REVEAL_TARGET_CLASS = "reveal"
ACTIVE_CLASS = "is-on"
REVEAL_ATTRIBUTE = "data-reveal"
RUNTIME_MARKER = "data-reveal-runtime"

RESET = "RESET"
REVEAL = "REVEAL"

REVEAL_RUNTIME_SCRIPT = f"""
<script {RUNTIME_MARKER}="1">
(function () {{
  function reset() {{
    document.querySelectorAll(".{REVEAL_TARGET_CLASS}").forEach(function (el) {{
      el.classList.remove("{ACTIVE_CLASS}");
    }});
  }}

  function reveal(id) {{
    var targets = document.querySelectorAll("[{REVEAL_ATTRIBUTE}]");
    for (var i = 0; i < targets.length; i++) {{
      if (targets[i].getAttribute("{REVEAL_ATTRIBUTE}") === String(id)) {{
        targets[i].classList.add("{ACTIVE_CLASS}");
        return;
      }}
    }}
  }}

  window.addEventListener("message", function (e) {{
    var msg = e.data;
    if (!msg) return;
    if (msg.type === "{RESET}") reset();
    if (msg.type === "{REVEAL}") reveal(msg.id);
  }});
}})();
</script>
"""

_CLOSING_BODY = re.compile(r"</body\s*>", re.IGNORECASE)


def prepare_slide_html(html: Optional[str]) -> str:
    """Return the slide markup with the reveal runtime injected exactly once."""
    document = html or ""
    if RUNTIME_MARKER in document:
        return document

    matches = list(_CLOSING_BODY.finditer(document))
    if not matches:
        return document + REVEAL_RUNTIME_SCRIPT
    position = matches[-1].start()
    return document[:position] + REVEAL_RUNTIME_SCRIPT + document[position:]


@dataclass(frozen=True)
class ResetMessage:
    def to_payload(self) -> Dict[str, str]:
        return {"type": RESET}


@dataclass(frozen=True)
class RevealMessage:
    step_id: str

    def to_payload(self) -> Dict[str, str]:
        return {"type": REVEAL, "id": self.step_id}


class RendererChannel(Protocol):
    def post(self, payload: Dict[str, str]) -> None:
        ...


class SlideDocument:
    """Python-side mirror of the injected runtime, for hosts without a browser."""

    def __init__(self, html: Optional[str]) -> None:
        self.soup = BeautifulSoup(html or "", "html.parser")

    @property
    def reveal_target_ids(self) -> Tuple[str, ...]:
        return tuple(str(el.get(REVEAL_ATTRIBUTE)) for el in self.soup.find_all(attrs={REVEAL_ATTRIBUTE: True}))

    @property
    def active_ids(self) -> Tuple[str, ...]:
        active: List[str] = []
        for el in self.soup.find_all(attrs={REVEAL_ATTRIBUTE: True}):
            if ACTIVE_CLASS in (el.get("class") or []):
                active.append(str(el.get(REVEAL_ATTRIBUTE)))
        return tuple(active)

    def apply(self, payload: Mapping[str, Any]) -> None:
        if not payload:
            return
        kind = payload.get("type")
        if kind == RESET:
            self._reset()
        elif kind == REVEAL:
            self._reveal(str(payload.get("id")))

    def _reset(self) -> None:
        for el in self.soup.find_all(class_=REVEAL_TARGET_CLASS):
            el["class"] = [name for name in el.get("class", []) if name != ACTIVE_CLASS]

    def _reveal(self, step_id: str) -> None:
        for el in self.soup.find_all(attrs={REVEAL_ATTRIBUTE: True}):
            if el.get(REVEAL_ATTRIBUTE) == step_id:
                classes = list(el.get("class") or [])
                if ACTIVE_CLASS not in classes:
                    classes.append(ACTIVE_CLASS)
                el["class"] = classes
                return


class DocumentChannel:
    """Channel that applies each payload to a SlideDocument and keeps nothing."""

    def __init__(self, document: Optional[SlideDocument] = None) -> None:
        self.document = document

    def post(self, payload: Dict[str, str]) -> None:
        if self.document is not None:
            self.document.apply(payload)


class RecordingChannel(DocumentChannel):
    """DocumentChannel that also keeps every posted payload until drained."""

    def __init__(self, document: Optional[SlideDocument] = None) -> None:
        super().__init__(document)
        self.payloads: List[Dict[str, str]] = []

    def post(self, payload: Dict[str, str]) -> None:
        self.payloads.append(dict(payload))
        super().post(payload)

    def drain(self) -> List[Dict[str, str]]:
        drained = self.payloads
        self.payloads = []
        return drained


class EmbeddedViewport:
    """One mounted slide document plus its load state."""

    def __init__(self, slide: Slide, channel: RendererChannel) -> None:
        self.slide = slide
        self.channel = channel
        self.document = prepare_slide_html(slide.html)
        self.loaded = False

    def mark_loaded(self) -> None:
        self.loaded = True
        self.send(ResetMessage())

    def send(self, message: ResetMessage | RevealMessage) -> bool:
        if not self.loaded:
            logger.debug(
                "Viewport for slide %s not loaded; dropping %s",
                self.slide.slide_id,
                message.to_payload()["type"],
            )
            return False
        self.channel.post(message.to_payload())
        return True

    def reset(self) -> bool:
        return self.send(ResetMessage())

    def reveal(self, step_id: str) -> bool:
        return self.send(RevealMessage(step_id))


def missing_reveal_targets(slide: Slide) -> Tuple[str, ...]:
    """Reveal step ids that have no matching element in the slide markup."""
    if not slide.reveal_data:
        return ()
    present = set(SlideDocument(slide.html).reveal_target_ids)
    return tuple(step_id for step_id in slide.reveal_data if step_id not in present)
