"""
Roast Item Converter.

Turns the text a roast model writes into the script the stage plays: an
ordered list of `SpeechItem` and `SoundItem` entries.

Key Components:
- Stage-direction lexer (`tokenize_stage_directions`): splits raw text into
  plain-text and `*...*` tokens. An unmatched asterisk stays plain text.
- Keyword classifier (`classify_direction`): maps the text inside a stage
  direction onto the closed `SoundEffect` set, defaulting to a crowd laugh.
- Converter (`to_items`): removes stage directions and parenthetical asides,
  splits the rest into sentences and interleaves sound cues drawn from a
  fixed palette. The only non-determinism is the injectable random source.
- Canned scripts for the loading screen, a missing guest and backend errors,
  so playback never receives an empty script.
"""

import random
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

STAGE_DIRECTION = re.compile(r"\*([^*]*)\*")
PARENTHETICAL = re.compile(r"\([^)]*\)")
SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")

SOUND_PROBABILITY = 0.7
NO_ROAST_TEXT = (
    "Well, this is awkward. No roast was generated tonight, "
    "so let's just say the code speaks for itself!"
)


class SoundEffect(Enum):
    """Sound effects the stage knows how to play: (cue, emoji, file)"""

    CROWD_LAUGH = ("crowd_laugh", "*crowd laughs*", "\U0001F602", "sounds/applause.mp3")
    RIMSHOT = ("rimshot", "*rimshot*", "\U0001F941", "sounds/rimshot.mp3")
    CRICKETS = ("crickets", "*crickets*", "\U0001F997", "sounds/crickets.mp3")
    CROWD_GASP = ("crowd_gasp", "*crowd gasps*", "\U0001F631", "sounds/crowdgasp.mp3")
    AIR_HORN = ("air_horn", "*air horn*", "\U0001F4EF", "sounds/airhorn.mp3")
    BOO = ("boo", "*crowd boos*", "\U0001F44E", "sounds/crowdboos.mp3")
    MIC_DROP = ("mic_drop", "*drops mic*", "\U0001F3A4", "sounds/micdrop.mp3")
    APPLAUSE = ("applause", "*applause*", "\U0001F44F", "sounds/applause.mp3")

    def __init__(self, effect: str, cue: str, emoji: str, file: str):
        self.effect = effect
        self.cue = cue
        self.emoji = emoji
        self.file = file


# Effects that may follow a sentence
SOUND_PALETTE = (
    SoundEffect.CROWD_LAUGH,
    SoundEffect.RIMSHOT,
    SoundEffect.CRICKETS,
    SoundEffect.CROWD_GASP,
    SoundEffect.AIR_HORN,
    SoundEffect.BOO,
)

# Checked in order; first keyword hit wins
DIRECTION_KEYWORDS = (
    (("mic",), SoundEffect.MIC_DROP),
    (("rimshot", "drum", "ba dum"), SoundEffect.RIMSHOT),
    (("cricket", "silence"), SoundEffect.CRICKETS),
    (("gasp",), SoundEffect.CROWD_GASP),
    (("horn",), SoundEffect.AIR_HORN),
    (("boo",), SoundEffect.BOO),
    (("applau", "clap", "cheer"), SoundEffect.APPLAUSE),
    (("laugh", "chuckle", "giggle"), SoundEffect.CROWD_LAUGH),
)


@dataclass(frozen=True)
class SpeechItem:
    text: str
    type: str = field(default="speech", init=False)


@dataclass(frozen=True)
class SoundItem:
    effect: str
    cue: str
    emoji: str
    file: str
    type: str = field(default="sound", init=False)

    @classmethod
    def from_effect(cls, effect: SoundEffect, cue: Optional[str] = None) -> "SoundItem":
        return cls(
            effect=effect.effect, cue=cue or effect.cue, emoji=effect.emoji, file=effect.file
        )


RoastItem = Union[SpeechItem, SoundItem]


@dataclass(frozen=True)
class Token:
    kind: str  # "text" or "direction"
    value: str


def opening_cue() -> SoundItem:
    return SoundItem.from_effect(SoundEffect.MIC_DROP, cue="*adjusts mic*")


def closing_cue() -> SoundItem:
    return SoundItem.from_effect(SoundEffect.MIC_DROP)


def tokenize_stage_directions(text: str) -> List[Token]:
    """Split text into plain-text and `*...*` stage-direction tokens"""
    tokens: List[Token] = []
    position = 0
    for match in STAGE_DIRECTION.finditer(text or ""):
        if match.start() > position:
            tokens.append(Token("text", text[position : match.start()]))
        tokens.append(Token("direction", match.group(1).strip()))
        position = match.end()
    if text and position < len(text):
        tokens.append(Token("text", text[position:]))
    return tokens


def classify_direction(direction: str) -> SoundEffect:
    lowered = direction.lower()
    for keywords, effect in DIRECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return effect
    return SoundEffect.CROWD_LAUGH


def extract_cues(text: str) -> List[SoundEffect]:
    """The sound effects the model asked for, in order of appearance"""
    return [
        classify_direction(token.value)
        for token in tokenize_stage_directions(text)
        if token.kind == "direction"
    ]


def clean_roast_text(text: str) -> str:
    """Remove stage directions and asides, leaving only the words to speak"""
    plain = "".join(
        token.value for token in tokenize_stage_directions(text) if token.kind == "text"
    )
    plain = PARENTHETICAL.sub("", plain)
    plain = re.sub(r"\s+", " ", plain).strip()
    plain = re.sub(r"^\s*,\s*", "", plain)
    plain = re.sub(r"\s*,\s*$", "", plain)
    return re.sub(r"\s+([.!?])", r"\1", plain)


def split_sentences(text: str) -> List[str]:
    """Sentences ending in `.`, `!` or `?`; a trailing fragment is kept"""
    return [s.strip() for s in SENTENCE.findall(text or "") if s.strip()]


def _sentence_items(sentences: Sequence[str], rng: Any) -> List[RoastItem]:
    items: List[RoastItem] = []
    last = len(sentences) - 1
    for index, sentence in enumerate(sentences):
        items.append(SpeechItem(sentence))
        if index < last and rng.random() < SOUND_PROBABILITY:
            items.append(SoundItem.from_effect(rng.choice(SOUND_PALETTE)))
    return items


def _sentences_for(roast_text: str, username: str) -> List[str]:
    text = (roast_text or "").replace("[username]", username or "")
    return split_sentences(clean_roast_text(text))


def to_items(
    roast_text: str, username: str = "", rng: Optional[random.Random] = None
) -> List[RoastItem]:
    """
    Convert roast text into a playable script.

    Args:
        roast_text: Text as written by the model, stage directions included.
        username: Substituted for `[username]` placeholders.
        rng: Random source deciding which sentences get a sound effect.

    Returns:
        An opening mic cue, one speech item per sentence with sound effects
        in between, and a closing mic drop. Empty text yields a single
        speech item instead.
    """
    sentences = _sentences_for(roast_text, username)
    if not sentences:
        return [SpeechItem(NO_ROAST_TEXT)]

    rng = rng or random
    return [opening_cue(), *_sentence_items(sentences, rng), closing_cue()]


def roast_text_of(response: Dict[str, Any]) -> str:
    """First roast variant of a backend roast response, or its `roast` field"""
    roasts = response.get("roasts") or []
    if roasts and isinstance(roasts[0], dict) and roasts[0].get("roast"):
        return roasts[0]["roast"]
    return response.get("roast") or ""


def convert_roast_response(
    response: Dict[str, Any], rng: Optional[random.Random] = None
) -> List[RoastItem]:
    """Script for a backend roast response, with the host's welcome"""
    username = response.get("username") or ""
    sentences = _sentences_for(roast_text_of(response), username) or [NO_ROAST_TEXT]

    rng = rng or random
    return [
        opening_cue(),
        SpeechItem(
            f"Ladies and gentlemen, welcome to tonight's roast of our special guest - {username}!"
        ),
        SoundItem.from_effect(SoundEffect.APPLAUSE),
        *_sentence_items(sentences, rng),
        closing_cue(),
    ]


def loading_script() -> List[RoastItem]:
    return [
        opening_cue(),
        SpeechItem(
            "Ladies and gentlemen, welcome to tonight's roast! "
            "Please wait while we dig up some dirt on our special guest..."
        ),
        SoundItem.from_effect(SoundEffect.CROWD_LAUGH),
    ]


def missing_guest_script() -> List[RoastItem]:
    return [
        opening_cue(),
        SpeechItem(
            "Ladies and gentlemen, welcome to tonight's roast! "
            "We seem to be missing our guest of honor!"
        ),
        SoundItem.from_effect(SoundEffect.CRICKETS),
    ]


def error_message(username: str, status: Optional[int]) -> str:
    if status == 404:
        return (
            f"Ladies and gentlemen, it seems like {username} doesn't exist on GitHub! "
            "Either they're using a different platform or they're living off the grid. "
            "Let's roast their non-existence anyway!"
        )
    if status == 429:
        return (
            "Woah there! We're getting a bit too popular! GitHub's rate limits are "
            "hitting us hard. Please try again in a few minutes when the digital "
            "bouncers let us back in."
        )
    if status is not None and status >= 500:
        return (
            "Well, this is awkward... Our server is having a meltdown! Maybe it's "
            f"trying to escape the horrible roast it was about to deliver to {username}!"
        )
    return (
        "Hmm, it seems like my writers have gone on strike! "
        f"I couldn't get any dirt on {username}'s GitHub profile."
    )


def error_script(username: str, status: Optional[int] = None) -> List[RoastItem]:
    """
    Script played instead of a roast when the backend could not deliver one.

    `status` is the HTTP status of the failed request: 404, 429 and 5xx get
    their own lines; anything else, including 0 for network failures, gets
    the writers' strike.
    """
    return [
        opening_cue(),
        SpeechItem(f"Ladies and gentlemen, welcome to tonight's roast of {username}!"),
        SoundItem.from_effect(SoundEffect.APPLAUSE),
        SpeechItem(error_message(username, status)),
        SoundItem.from_effect(SoundEffect.CRICKETS),
        SpeechItem(
            "And remember, no roast means you're doing something right... "
            "or very, very wrong!"
        ),
        SoundItem.from_effect(SoundEffect.CROWD_LAUGH),
    ]


def item_to_dict(item: RoastItem) -> Dict[str, Any]:
    return asdict(item)
