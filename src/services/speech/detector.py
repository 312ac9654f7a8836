"""Live speech detection over a stream of loudness samples.

A two-stage debounce turns noisy dB readings into a small public state:

* a quiet stretch only counts as a gap once it lasts longer than
  ``SHORT_SILENCE_MS`` (breath pauses do not split an utterance);
* after such a gap, sound must persist longer than ``SPEECH_CONFIRM_MS``
  before a clip is opened (coughs do not start clips).

Until the first confirmed silence the detector reports ``warming-up`` and
never opens a clip. All comparisons are strict.

``step`` is a pure transition function; ``SpeechDetector`` keeps the
current state for callers that feed samples one at a time.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum

SPEAKING_THRESHOLD_DB = -33.0
SHORT_SILENCE_MS = 800
SPEECH_CONFIRM_MS = 1400


@dataclass(frozen=True)
class LoudnessSample:
    """One reading from the live audio path."""

    timestamp_ms: float
    level_db: float


# ---------------------------------------------------------------------------
# Internal state (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActiveSound:
    last_silence_end: float | None = None
    speech_confirmed: bool = False
    clip_id: str | None = None


@dataclass(frozen=True)
class BriefSilence:
    silence_start: float
    last_silence_end: float | None = None
    speech_confirmed: bool = False
    clip_id: str | None = None


@dataclass(frozen=True)
class ConfirmedSilence:
    silence_start: float


SpeechMachineState = ActiveSound | BriefSilence | ConfirmedSilence

INITIAL_STATE = ActiveSound()


# ---------------------------------------------------------------------------
# Public projection
# ---------------------------------------------------------------------------


class SpeechStateKind(StrEnum):
    """What the live indicator shows."""

    warming_up = "warming-up"
    speaking = "speaking"
    clip_active = "clip-active"
    silent = "silent"


@dataclass(frozen=True)
class PublicSpeechState:
    kind: SpeechStateKind
    clip_id: str | None = None


WARMING_UP = PublicSpeechState(SpeechStateKind.warming_up)
SPEAKING = PublicSpeechState(SpeechStateKind.speaking)
SILENT = PublicSpeechState(SpeechStateKind.silent)


def clip_active(clip_id: str) -> PublicSpeechState:
    return PublicSpeechState(SpeechStateKind.clip_active, clip_id)


def project(state: SpeechMachineState) -> PublicSpeechState:
    """Map an internal state to what consumers are allowed to see."""
    if isinstance(state, ConfirmedSilence):
        return SILENT
    if state.last_silence_end is None:
        return WARMING_UP
    if state.speech_confirmed and state.clip_id is not None:
        return clip_active(state.clip_id)
    return SPEAKING


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


def _new_clip_id() -> str:
    return str(uuid.uuid4())


def _speech_long_enough(state: ActiveSound | BriefSilence, now: float) -> bool:
    return (
        state.last_silence_end is not None
        and not state.speech_confirmed
        and now - state.last_silence_end > SPEECH_CONFIRM_MS
    )


def step(
    state: SpeechMachineState,
    sample: LoudnessSample,
    new_id: Callable[[], str] = _new_clip_id,
) -> SpeechMachineState:
    """Return the state after observing *sample*.

    Returns the same object when nothing changes, so ``next is state``
    is a cheap change test.
    """
    now = sample.timestamp_ms
    level = sample.level_db

    if isinstance(state, ActiveSound):
        if level < SPEAKING_THRESHOLD_DB:
            return BriefSilence(
                silence_start=now,
                last_silence_end=state.last_silence_end,
                speech_confirmed=state.speech_confirmed,
                clip_id=state.clip_id,
            )
        if _speech_long_enough(state, now):
            return replace(state, speech_confirmed=True, clip_id=new_id())
        return state

    if isinstance(state, BriefSilence):
        if level > SPEAKING_THRESHOLD_DB:
            return ActiveSound(
                last_silence_end=state.last_silence_end,
                speech_confirmed=state.speech_confirmed,
                clip_id=state.clip_id,
            )
        if now - state.silence_start > SHORT_SILENCE_MS:
            # The silence clock restarts at the confirming sample.
            return ConfirmedSilence(silence_start=now)
        if _speech_long_enough(state, now):
            return replace(state, speech_confirmed=True, clip_id=new_id())
        return state

    if isinstance(state, ConfirmedSilence):
        if level > SPEAKING_THRESHOLD_DB:
            return ActiveSound(last_silence_end=now, speech_confirmed=False, clip_id=None)
        return state

    raise TypeError(f"Unknown speech detector state: {state!r}")


class SpeechDetector:
    """Stateful wrapper around :func:`step`.

    Args:
        new_id: Clip id factory (defaults to UUID4 strings).
    """

    def __init__(self, new_id: Callable[[], str] = _new_clip_id) -> None:
        self._new_id = new_id
        self._state: SpeechMachineState = INITIAL_STATE

    @property
    def state(self) -> SpeechMachineState:
        return self._state

    @property
    def public_state(self) -> PublicSpeechState:
        return project(self._state)

    def feed(self, sample: LoudnessSample) -> PublicSpeechState:
        """Advance by one sample and return the resulting public state."""
        self._state = step(self._state, sample, self._new_id)
        return project(self._state)

    def reset(self) -> None:
        """Go back to warm-up (called when a new recording starts)."""
        self._state = INITIAL_STATE
