"""
Terminal stage.

Concrete ports and screens that put the show on a terminal:

- `TerminalDisplay` types the script into the terminal with typer styling.
- `PygameSoundPlayer` plays sound files from a media directory with pygame's
  mixer, off the event loop in a worker thread.
- `BackendSpeaker` fetches ElevenLabs audio through the backend's TTS
  endpoint and plays it on pygame's music channel.
- `SilentSoundPlayer` and `SilentSpeaker` stand in when sound is off or no
  audio device is available.
- Screens for every flow step, wired together by `build_show`.
"""

# ruff: noqa: E402
import os

os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import io
import random
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import pygame
import typer

from core.logging_config import get_logger
from core.validation import extract_username
from stage.client import RoastAPIClient
from stage.fillers import FillerData, FillerPlayer
from stage.flow import DEFAULT_STEPS, FlowOrchestrator, FlowStep, Screen
from stage.items import SoundEffect
from stage.sequencer import (
    Display,
    PlaybackSequencer,
    PlaybackTiming,
    SoundPlayer,
    Speaker,
)

logger = get_logger(__name__)


class TerminalDisplay(Display):
    """Typewriter output on stdout"""

    def __init__(self, color: bool = True):
        self.color = color
        self._shown = ""

    def show_text(self, text: str) -> None:
        if text.startswith(self._shown):
            typer.echo(text[len(self._shown) :], nl=False)
        else:
            if self._shown:
                typer.echo("")
            typer.echo(text, nl=False)
        self._shown = text

    def hide_text(self) -> None:
        if self._shown:
            typer.echo("")
        self._shown = ""

    def show_cue(self, cue: str, emoji: str = "") -> None:
        if self._shown:
            typer.echo("")
            self._shown = ""
        label = f"  {emoji} {cue}" if emoji else f"  {cue}"
        if self.color:
            typer.secho(label, fg=typer.colors.YELLOW, italic=True)
        else:
            typer.echo(label)

    def clear_cue(self) -> None:
        pass


def init_mixer() -> None:
    """Initialize pygame's mixer once.

    Raises:
        RuntimeError: If no audio device is available.
    """
    if pygame.mixer.get_init():
        return
    try:
        pygame.mixer.init()
    except pygame.error as e:
        raise RuntimeError(f"Failed to initialize pygame audio mixer: {e}") from e


class PygameSoundPlayer(SoundPlayer):
    """Plays sound effects from `media_root` on pygame mixer channels"""

    def __init__(self, media_root: Union[str, Path]):
        init_mixer()
        self.media_root = Path(media_root)

    async def play(self, file: str) -> None:
        path = self.media_root / file
        if not path.is_file():
            raise FileNotFoundError(f"Sound file not found: {path}")

        def _play() -> None:
            try:
                channel = pygame.mixer.Sound(str(path)).play()
                while channel is not None and channel.get_busy():
                    pygame.time.Clock().tick(10)
            except pygame.error as e:
                raise RuntimeError(f"Failed to play {path}: {e}") from e

        await asyncio.to_thread(_play)


class BackendSpeaker(Speaker):
    """Speaks through the backend's ElevenLabs proxy"""

    def __init__(self, client: RoastAPIClient, voice_id: Optional[str] = None):
        init_mixer()
        self.client = client
        self.voice_id = voice_id

    async def speak(self, text: str) -> None:
        audio = await self.client.generate_speech(text, voice_id=self.voice_id)
        if not audio:
            raise RuntimeError("Backend returned no audio")

        def _play() -> None:
            try:
                pygame.mixer.music.load(io.BytesIO(audio))
                pygame.mixer.music.play()
                while pygame.mixer.music.get_busy():
                    pygame.time.Clock().tick(10)
            except pygame.error as e:
                raise RuntimeError(f"Failed to play speech: {e}") from e

        await asyncio.to_thread(_play)

    def cancel(self) -> None:
        if pygame.mixer.get_init():
            pygame.mixer.music.stop()


class SilentSoundPlayer(SoundPlayer):
    async def play(self, file: str) -> None:
        logger.debug(f"Sound off, skipping {file}")


class SilentSpeaker(Speaker):
    async def speak(self, text: str) -> None:
        pass

    def cancel(self) -> None:
        pass


async def _prompt(text: str, default: Optional[str] = None) -> str:
    return await asyncio.to_thread(typer.prompt, text, default=default, show_default=False)


class EnterScreen(Screen):
    async def run(self, flow: FlowOrchestrator) -> Optional[str]:
        typer.secho("\nTHE GIT ROAST SHOW", fg=typer.colors.RED, bold=True)
        await _prompt("Press Enter to take your seat", default="")
        return None


class GitInputScreen(Screen):
    """Asks for a guest until a valid GitHub username is given"""

    def __init__(self, username: Optional[str] = None):
        self.preset = username

    async def run(self, flow: FlowOrchestrator) -> Optional[str]:
        if self.preset:
            username, self.preset = extract_username(self.preset), None
            if username:
                return username
        while True:
            raw = await _prompt("GitHub username or profile URL")
            username = extract_username(raw)
            if username:
                return username
            typer.secho("That doesn't look like a GitHub username.", fg=typer.colors.RED)


class FillersScreen(Screen):
    def __init__(self, player: FillerPlayer):
        self.player = player

    async def run(self, flow: FlowOrchestrator) -> Optional[str]:
        await self.player.play()
        return None


class RoastScreen(Screen):
    """Plays the prefetched roast script"""

    def __init__(self, sequencer: PlaybackSequencer):
        self.sequencer = sequencer

    async def run(self, flow: FlowOrchestrator) -> Optional[str]:
        items = await flow.roast_script()
        self.sequencer.load(items, flow.username)
        await self.sequencer.run()
        return None


class OutroScreen(Screen):
    def __init__(self, display: Display, sounds: SoundPlayer, timing: PlaybackTiming):
        self.display = display
        self.sounds = sounds
        self.timing = timing

    async def run(self, flow: FlowOrchestrator) -> Optional[str]:
        effect = SoundEffect.APPLAUSE
        self.display.show_cue(effect.cue, effect.emoji)
        try:
            await asyncio.wait_for(
                self.sounds.play(effect.file), timeout=self.timing.scaled(self.timing.sound_timeout)
            )
        except asyncio.TimeoutError:
            logger.warning("Outro applause timed out")
        except Exception as e:
            logger.warning(f"Outro applause failed: {e}")
        self.display.clear_cue()
        typer.secho(f"\nThat's the show! Thanks for being a good sport, {flow.username}.", bold=True)
        return None


def build_show(
    client: RoastAPIClient,
    media_root: Union[str, Path],
    fillers: Optional[FillerData] = None,
    username: Optional[str] = None,
    steps: Sequence[FlowStep] = DEFAULT_STEPS,
    sound: bool = True,
    tts: bool = True,
    language: str = "en",
    quick: bool = False,
    timing: Optional[PlaybackTiming] = None,
    voice_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> FlowOrchestrator:
    """Wire the terminal screens into a flow"""
    timing = timing or PlaybackTiming()
    rng = rng or random.Random()
    display = TerminalDisplay()

    sounds: SoundPlayer = SilentSoundPlayer()
    speaker: Speaker = SilentSpeaker()
    if sound:
        try:
            sounds = PygameSoundPlayer(media_root)
            if tts:
                speaker = BackendSpeaker(client, voice_id)
        except RuntimeError as e:
            logger.warning(f"Audio unavailable, continuing silently: {e}")
            sound = False

    async def load_script(guest: str):
        if not await client.is_backend_available():
            logger.warning("Backend unavailable; the roast will be an error script")
        return await client.get_roast_items(guest, quick=quick, language=language, rng=rng)

    sequencer = PlaybackSequencer(
        display, sounds, speaker, timing=timing, sound_enabled=sound, tts_enabled=tts, rng=rng
    )
    screens: Dict[FlowStep, Screen] = {
        FlowStep.ENTER_BUTTON: EnterScreen(),
        FlowStep.GIT_INPUT: GitInputScreen(username),
        FlowStep.ROAST: RoastScreen(sequencer),
        FlowStep.OUTRO: OutroScreen(display, sounds, timing),
    }
    if fillers is not None:
        screens[FlowStep.FILLERS] = FillersScreen(
            FillerPlayer(fillers, display, sounds, timing=timing, rng=rng)
        )
    else:
        steps = [step for step in steps if step is not FlowStep.FILLERS]

    return FlowOrchestrator(screens, steps=steps, load_script=load_script)
