"""Observability events emitted by the agent.

Observers are fire-and-forget: a failing observer is logged at debug
level and never interrupts a turn.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentStartEvent:
    provider: str
    model: str


@dataclass(frozen=True)
class ToolCallEvent:
    tool: str
    duration: float
    success: bool


@dataclass(frozen=True)
class AgentEndEvent:
    duration: float
    tokens_used: int


@dataclass(frozen=True)
class ErrorEvent:
    component: str
    message: str


ObserverEvent = Union[AgentStartEvent, ToolCallEvent, AgentEndEvent, ErrorEvent]


class Observer(ABC):
    name: str = "observer"

    @abstractmethod
    def record_event(self, event: ObserverEvent) -> None:
        ...


class NoopObserver(Observer):
    name = "noop"

    def record_event(self, event: ObserverEvent) -> None:
        return None


class LogObserver(Observer):
    """Writes every event to the ``agent.observer`` logger."""

    name = "log"

    def record_event(self, event: ObserverEvent) -> None:
        if isinstance(event, AgentStartEvent):
            logger.info("agent.start provider=%s model=%s", event.provider, event.model)
        elif isinstance(event, ToolCallEvent):
            logger.info(
                "tool.call tool=%s duration_ms=%d success=%s",
                event.tool, int(event.duration * 1000), event.success,
            )
        elif isinstance(event, AgentEndEvent):
            logger.info(
                "agent.end duration_ms=%d tokens=%d",
                int(event.duration * 1000), event.tokens_used,
            )
        elif isinstance(event, ErrorEvent):
            logger.warning("agent.error component=%s message=%s", event.component, event.message)


class RecordingObserver(Observer):
    """Keeps events in memory; handy for tests and diagnostics."""

    name = "memory"

    def __init__(self):
        self.events: List[ObserverEvent] = []

    def record_event(self, event: ObserverEvent) -> None:
        self.events.append(event)


def create_observer(backend: str) -> Observer:
    backend = (backend or "none").strip().lower()
    if backend == "log":
        return LogObserver()
    if backend == "memory":
        return RecordingObserver()
    return NoopObserver()


def emit(observer: Observer, event: ObserverEvent) -> None:
    """Deliver an event, isolating the caller from observer failures."""
    try:
        observer.record_event(event)
    except Exception as e:
        logger.debug("Observer %s failed on %s: %s", observer.name, type(event).__name__, e)
