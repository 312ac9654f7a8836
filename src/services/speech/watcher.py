"""Clip boundary events derived from consecutive public speech states.

Only two edges matter:

* ``speaking -> clip-active``  raises :class:`ClipStarted`
* ``clip-active -> silent``    raises :class:`ClipEnded`

Every other pair (including repeats of the same state) raises nothing.
"""

from dataclasses import dataclass

from src.services.speech.detector import WARMING_UP, PublicSpeechState, SpeechStateKind


@dataclass(frozen=True)
class ClipStarted:
    clip_id: str


@dataclass(frozen=True)
class ClipEnded:
    at_ms: float


BoundaryEvent = ClipStarted | ClipEnded


def detect_boundary(
    previous: PublicSpeechState,
    current: PublicSpeechState,
    now_ms: float,
) -> BoundaryEvent | None:
    """Return the boundary event for the ``previous -> current`` edge, if any."""
    if (
        previous.kind == SpeechStateKind.speaking
        and current.kind == SpeechStateKind.clip_active
        and current.clip_id is not None
    ):
        return ClipStarted(current.clip_id)
    if previous.kind == SpeechStateKind.clip_active and current.kind == SpeechStateKind.silent:
        return ClipEnded(now_ms)
    return None


class ClipBoundaryWatcher:
    """Remembers the last public state and reports boundary edges."""

    def __init__(self, initial: PublicSpeechState = WARMING_UP) -> None:
        self._previous = initial

    @property
    def previous(self) -> PublicSpeechState:
        return self._previous

    def observe(self, current: PublicSpeechState, now_ms: float) -> BoundaryEvent | None:
        event = detect_boundary(self._previous, current, now_ms)
        self._previous = current
        return event

    def reset(self, initial: PublicSpeechState = WARMING_UP) -> None:
        self._previous = initial
