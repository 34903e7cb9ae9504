"""
Filler player.

Plays the pre-recorded filler segments that keep the audience busy while the
real roast is being fetched. The segments come from a JSON collection:

    {"audio_roast_collection": {
        "title": ..., "description": ...,
        "sfx_intro": "intro.mp3", "sfx_outro": "outro.mp3",
        "roast_sequence": [
            {"order": 1, "stage_name": ..., "sfx_transition": "whoosh.mp3",
             "options": [{"filename": "roast1.mp3", "content": "..."}]}
        ]}}

Sound effects resolve to `sounds/<file>` and spoken segments to
`roasts/<file>`, relative to the sound player's media root. A missing or
broken file turns into a timed pause.
"""

import asyncio
import random
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from core.logging_config import get_logger
from stage.sequencer import Display, PlaybackTiming, SoundPlayer

logger = get_logger(__name__)

SEGMENT_AUDIO_SECONDS = 3.0
SEGMENT_TIMEOUT_SECONDS = 15.0
SFX_TIMEOUT_SECONDS = 5.0
SFX_FALLBACK_PAUSE = 1.0
TRANSITION_PAUSE = 0.5
NO_TRANSITION_PAUSE = 1.0


class FillerOption(BaseModel):
    filename: str
    content: str


class FillerStage(BaseModel):
    order: int
    stage_name: str
    options: List[FillerOption] = Field(min_length=1)
    sfx_transition: Optional[str] = None


class AudioRoastCollection(BaseModel):
    title: str = ""
    description: str = ""
    sfx_intro: Optional[str] = None
    sfx_outro: Optional[str] = None
    roast_sequence: List[FillerStage] = Field(default_factory=list)


class FillerData(BaseModel):
    audio_roast_collection: AudioRoastCollection


def load_fillers(path: Union[str, Path]) -> FillerData:
    data = FillerData.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(
        f"Loaded {len(data.audio_roast_collection.roast_sequence)} filler stages from {path}"
    )
    return data


class FillerPlayer:
    """Plays one pass through a filler collection"""

    def __init__(
        self,
        data: FillerData,
        display: Display,
        sounds: SoundPlayer,
        timing: Optional[PlaybackTiming] = None,
        rng: Optional[random.Random] = None,
    ):
        self.collection = data.audio_roast_collection
        self.display = display
        self.sounds = sounds
        self.timing = timing or PlaybackTiming()
        self.rng = rng or random.Random()
        # (stage_name, filename) of every segment played
        self.played: List[Tuple[str, str]] = []

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(self.timing.scaled(seconds))

    async def _play_file(self, file: str, timeout: float, fallback_pause: float) -> None:
        try:
            await asyncio.wait_for(self.sounds.play(file), timeout=self.timing.scaled(timeout))
        except asyncio.TimeoutError:
            logger.warning(f"Filler audio {file} timed out")
        except Exception as e:
            logger.warning(f"Filler audio {file} unavailable: {e}")
            await self._sleep(fallback_pause)

    async def _play_sfx(self, filename: Optional[str]) -> None:
        if filename:
            await self._play_file(f"sounds/{filename}", SFX_TIMEOUT_SECONDS, SFX_FALLBACK_PAUSE)

    async def _type(self, text: str) -> None:
        interval = SEGMENT_AUDIO_SECONDS / (len(text) + 5)
        for position in range(1, len(text) + 1):
            self.display.show_text(text[:position])
            await self._sleep(interval)

    async def _play_stage(self, stage: FillerStage) -> None:
        option = self.rng.choice(stage.options)
        self.played.append((stage.stage_name, option.filename))
        logger.info(f"Filler stage {stage.order}: {stage.stage_name}")

        self.display.show_cue(stage.stage_name)
        self.display.show_text("")
        await asyncio.gather(
            self._type(option.content),
            self._play_file(
                f"roasts/{option.filename}", SEGMENT_TIMEOUT_SECONDS, SEGMENT_AUDIO_SECONDS
            ),
        )

        if stage.sfx_transition:
            await self._play_sfx(stage.sfx_transition)
            self.display.hide_text()
            await self._sleep(TRANSITION_PAUSE)
        else:
            self.display.hide_text()
            await self._sleep(NO_TRANSITION_PAUSE)
        self.display.clear_cue()

    async def play(self) -> None:
        """Intro SFX, one random option per stage in order, then outro SFX"""
        await self._play_sfx(self.collection.sfx_intro)
        for stage in sorted(self.collection.roast_sequence, key=lambda s: s.order):
            await self._play_stage(stage)
        await self._play_sfx(self.collection.sfx_outro)
        logger.info("Filler playback complete")
