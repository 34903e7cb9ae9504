"""
Playback Sequencer.

Plays a roast script item by item as an explicit asyncio state machine:

    Idle(-1) -> PlayingItem(0) -> ... -> PlayingItem(N-1) -> Complete(N)

with `Cancelled` reachable from any state.

Key Components:
- Ports (`Display`, `SoundPlayer`, `Speaker`): the only way the sequencer
  reaches the screen and the speakers, so it runs the same against a
  terminal, a real audio device or test fakes.
- `PlaybackTiming`: every pause the show makes, scaled by `time_scale`.
- `PlaybackSequencer`: one `advance()` call is one transition. `run()` keeps
  advancing until the script completes or is cancelled.

Pacing Rules:
- Sound items show their cue and play their file, bounded by a 3 s timeout.
- Speech items type their text while TTS speaks it. Waiting is bounded by a
  fallback timer derived from the text length, and the text stays up for a
  minimum time. A sound item right after a speech item is started while the
  text is still visible and is consumed by the same transition.
- Each transition is bounded by a 15 s safety timeout. Failures are logged
  and the show moves on: the index never moves backwards and the script
  always finishes.
"""

import asyncio
import inspect
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Set

from core.logging_config import get_logger
from stage.items import NO_ROAST_TEXT, RoastItem, SoundItem, SpeechItem

logger = get_logger(__name__)


class Display(ABC):
    """Where the script is shown"""

    @abstractmethod
    def show_text(self, text: str) -> None:
        pass

    @abstractmethod
    def hide_text(self) -> None:
        pass

    @abstractmethod
    def show_cue(self, cue: str, emoji: str = "") -> None:
        pass

    @abstractmethod
    def clear_cue(self) -> None:
        pass


class SoundPlayer(ABC):
    @abstractmethod
    async def play(self, file: str) -> None:
        """Play a sound file, returning when playback ends"""


class Speaker(ABC):
    @abstractmethod
    async def speak(self, text: str) -> None:
        """Speak text aloud, returning when the audio ends"""

    @abstractmethod
    def cancel(self) -> None:
        """Stop any speech in progress immediately"""


@dataclass(frozen=True)
class PlaybackTiming:
    """Pauses in seconds, before scaling"""

    time_scale: float = 1.0
    sound_timeout: float = 3.0
    after_sound_pause: float = 0.5
    muted_sound_pause: float = 1.0
    tts_lead_in: float = 0.2
    overlap_hold: float = 1.2
    advance_delay: float = 0.4
    completion_delay: float = 1.0
    safety_timeout: float = 15.0
    failure_pause: float = 1.0
    typing_settle: float = 0.15

    def scaled(self, seconds: float) -> float:
        return max(0.0, seconds * self.time_scale)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def estimated_typing_duration(text: str) -> float:
    return clamp(len(text) * 0.045, 2.5, 6.0)


def minimum_visible_time(typing_duration: float) -> float:
    return max(2.0, typing_duration * 0.8)


def tts_fallback_timeout(text: str) -> float:
    return max(4.0, len(text) / 12) + 1.0


def text_linger_time(text: str) -> float:
    return clamp(len(text) * 0.012, 1.0, 1.5)


def typing_delays(
    text: str, duration: float, rng: Optional[random.Random] = None
) -> List[float]:
    """
    Delay after each character of the typing animation.

    The base delay spreads `duration` over the text, never below 25 ms.
    Sentence punctuation, other punctuation and spaces pause longer; every
    other character jitters by up to 30% either way.
    """
    if not text:
        return []
    rng = rng or random
    base = max(0.025, duration / (len(text) * 1.4))

    delays = []
    for char in text:
        if char in ".!?":
            delays.append(base * 2.5)
        elif char in ",;:":
            delays.append(base * 1.8)
        elif char == " ":
            delays.append(base * 1.3)
        else:
            delays.append(base + base * 0.6 * (rng.random() - 0.5))
    return delays


class PlaybackPhase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass
class PlaybackState:
    index: int = -1
    phase: PlaybackPhase = PlaybackPhase.IDLE
    is_processing: bool = False
    # Every index the sequencer has entered, in order
    visited: List[int] = field(default_factory=list)


class PlaybackSequencer:
    """Drives one roast script through the display, sound and speech ports"""

    def __init__(
        self,
        display: Display,
        sounds: SoundPlayer,
        speaker: Speaker,
        timing: Optional[PlaybackTiming] = None,
        sound_enabled: bool = True,
        tts_enabled: bool = True,
        on_complete: Optional[Callable[[], Any]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.display = display
        self.sounds = sounds
        self.speaker = speaker
        self.timing = timing or PlaybackTiming()
        self.sound_enabled = sound_enabled
        self.tts_enabled = tts_enabled
        self.on_complete = on_complete
        self.rng = rng or random.Random()

        self.items: List[RoastItem] = []
        self.username = ""
        self.state = PlaybackState()
        self._loaded = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, items: Sequence[RoastItem], username: str = "") -> None:
        """Replace the script, cancelling whatever was playing"""
        if self._loaded:
            self.cancel()
        self.items = list(items) or [SpeechItem(NO_ROAST_TEXT)]
        self.username = username
        self.state = PlaybackState()
        self._loaded = True
        logger.info(f"Loaded script with {len(self.items)} items for '{username}'")

    def set_username(self, username: str) -> None:
        """A new guest means the current show is over"""
        if username != self.username:
            self.cancel()
            self.username = username

    def cancel(self) -> None:
        """Stop speech and cancel every pending task"""
        if self.state.phase is not PlaybackPhase.COMPLETE:
            self.state.phase = PlaybackPhase.CANCELLED
        self._loaded = False
        try:
            self.speaker.cancel()
        except Exception as e:
            logger.warning(f"Error cancelling speech: {e}")
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(self.timing.scaled(seconds))

    @property
    def finished(self) -> bool:
        return self.state.phase in (PlaybackPhase.COMPLETE, PlaybackPhase.CANCELLED)

    async def advance(self) -> bool:
        """
        Perform one transition.

        Returns:
            bool: False if nothing happened: no script loaded, playback
            finished, or another transition is still in flight.
        """
        if not self._loaded or self.finished or self.state.is_processing:
            return False

        state = self.state
        state.is_processing = True
        try:
            if state.index == -1:
                self._enter(0)
                state.phase = PlaybackPhase.PLAYING
                return True

            if state.index >= len(self.items):
                await self._complete()
                return True

            step = await self._spawn(self._play_with_timeout(state.index))
            self._enter(state.index + max(1, step))
            return True
        except asyncio.CancelledError:
            if state.phase is PlaybackPhase.CANCELLED:
                return False
            raise
        finally:
            state.is_processing = False

    async def run(self) -> PlaybackState:
        """Advance until the script completes or playback is cancelled"""
        if not self._loaded:
            raise RuntimeError("No script loaded")
        state = self.state
        # A later load() replaces the state and ends this loop
        while state is self.state and not self.finished:
            progressed = await self.advance()
            if not progressed and not self.finished:
                await asyncio.sleep(0)
        return state

    def _enter(self, index: int) -> None:
        index = min(index, len(self.items))
        if index < self.state.index:
            raise RuntimeError(f"Playback cannot move back from {self.state.index} to {index}")
        self.state.index = index
        self.state.visited.append(index)

    async def _complete(self) -> None:
        await self._spawn(self._sleep(self.timing.completion_delay))
        if self.state.phase is PlaybackPhase.CANCELLED:
            return
        self.state.phase = PlaybackPhase.COMPLETE
        logger.info("Roast script complete")
        if self.on_complete is not None:
            result = self.on_complete()
            if inspect.isawaitable(result):
                await result

    async def _play_with_timeout(self, index: int) -> int:
        item = self.items[index]
        try:
            return await asyncio.wait_for(
                self._play_item(index), timeout=self.timing.scaled(self.timing.safety_timeout)
            )
        except asyncio.TimeoutError:
            logger.warning(f"Item {index} ({item.type}) hit the safety timeout; moving on")
            return 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error playing item {index} ({item.type}): {e}")
            await self._sleep(self.timing.failure_pause)
            return 1

    async def _play_item(self, index: int) -> int:
        item = self.items[index]
        logger.debug(f"Playing item {index + 1}/{len(self.items)}: {item.type}")
        if isinstance(item, SoundItem):
            return await self._play_sound_item(item)
        return await self._play_speech_item(index, item)

    async def _play_sound(self, file: str) -> None:
        try:
            await asyncio.wait_for(
                self.sounds.play(file), timeout=self.timing.scaled(self.timing.sound_timeout)
            )
        except asyncio.TimeoutError:
            logger.warning(f"Sound {file} timed out")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Sound playback failed for {file}: {e}")

    async def _play_sound_item(self, item: SoundItem) -> int:
        self.display.show_cue(item.cue, item.emoji)
        if self.sound_enabled:
            await self._play_sound(item.file)
            self.display.clear_cue()
            await self._sleep(self.timing.after_sound_pause)
        else:
            await self._sleep(self.timing.muted_sound_pause)
            self.display.clear_cue()
        return 1

    async def _type(self, text: str, duration: float) -> None:
        for position, delay in enumerate(typing_delays(text, duration, self.rng), start=1):
            self.display.show_text(text[:position])
            await self._sleep(delay)
        await self._sleep(self.timing.typing_settle)

    async def _speak(self, text: str) -> None:
        await self._sleep(self.timing.tts_lead_in)
        try:
            await asyncio.wait_for(
                self.speaker.speak(text), timeout=self.timing.scaled(tts_fallback_timeout(text))
            )
        except asyncio.TimeoutError:
            logger.warning("TTS fallback timeout reached")
            self.speaker.cancel()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"TTS failed: {e}")

    async def _play_speech_item(self, index: int, item: SpeechItem) -> int:
        text = item.text.replace("[username]", self.username)
        self.display.show_text("")

        duration = estimated_typing_duration(text)
        jobs = [self._type(text, duration)]
        if self.sound_enabled and self.tts_enabled:
            jobs.append(self._speak(text))
        jobs.append(self._sleep(minimum_visible_time(duration)))
        await asyncio.gather(*(self._spawn(job) for job in jobs))

        step = 1
        upcoming = self.items[index + 1] if index + 1 < len(self.items) else None
        if isinstance(upcoming, SoundItem):
            self.display.show_cue(upcoming.cue, upcoming.emoji)
            if self.sound_enabled:
                self._spawn(self._play_sound(upcoming.file))
            await self._sleep(self.timing.overlap_hold)
            step = 2

        await self._sleep(text_linger_time(text))
        self.display.hide_text()
        await self._sleep(self.timing.advance_delay)
        self.display.clear_cue()
        return step
