"""Progress events streamed to the caller while a turn runs."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentEvent:
    kind: str  # token | tool_start | tool_result | done | error
    text: str = ""
    name: Optional[str] = None

    @classmethod
    def token(cls, text: str) -> "AgentEvent":
        return cls("token", text=text)

    @classmethod
    def tool_start(cls, name: str) -> "AgentEvent":
        return cls("tool_start", name=name)

    @classmethod
    def tool_result(cls, name: str, preview: str) -> "AgentEvent":
        return cls("tool_result", text=preview, name=name)

    @classmethod
    def done(cls, text: str) -> "AgentEvent":
        return cls("done", text=text)

    @classmethod
    def error(cls, message: str) -> "AgentEvent":
        return cls("error", text=message)


EventSink = Callable[[AgentEvent], None]


def discard_event(event: AgentEvent) -> None:
    return None


def send(sink: EventSink, event: AgentEvent) -> None:
    """Deliver an event; a failing sink never interrupts the turn."""
    try:
        sink(event)
    except Exception as e:
        logger.debug("Event sink failed on %s: %s", event.kind, e)
