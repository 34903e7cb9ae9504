"""
Flow Orchestrator.

Runs the show's screens one after another:

    ENTER_BUTTON -> GIT_INPUT -> FILLERS -> ROAST -> OUTRO

Only the active step's screen runs, and the flow moves on only when that
screen finishes. The username entered at `GIT_INPUT` is kept for the rest of
the cycle. As soon as it is known, the roast script starts downloading in
the background so the filler segments cover the wait. Finishing the last
step starts the cycle over.

The step list is configurable, so a deployment can leave out screens (the
enter button or fillers, for example) without touching the screens
themselves.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from core.logging_config import get_logger
from stage.items import RoastItem, missing_guest_script

logger = get_logger(__name__)


class FlowStep(str, Enum):
    ENTER_BUTTON = "ENTER_BUTTON"
    GIT_INPUT = "GIT_INPUT"
    FILLERS = "FILLERS"
    ROAST = "ROAST"
    OUTRO = "OUTRO"


DEFAULT_STEPS = (
    FlowStep.ENTER_BUTTON,
    FlowStep.GIT_INPUT,
    FlowStep.FILLERS,
    FlowStep.ROAST,
    FlowStep.OUTRO,
)

ScriptLoader = Callable[[str], Awaitable[List[RoastItem]]]


class Screen(ABC):
    """One step of the show"""

    @abstractmethod
    async def run(self, flow: "FlowOrchestrator") -> Optional[str]:
        """
        Run the screen to completion.

        Returns:
            The username for the `GIT_INPUT` screen; ignored for the others.
        """


class FlowOrchestrator:
    """Linear state machine over the show's screens"""

    def __init__(
        self,
        screens: Dict[FlowStep, Screen],
        steps: Sequence[FlowStep] = DEFAULT_STEPS,
        load_script: Optional[ScriptLoader] = None,
    ):
        if not steps:
            raise ValueError("At least one flow step is required")
        self.screens = screens
        self.steps = tuple(steps)
        self.load_script = load_script
        self.index = 0
        self.username = ""
        self.completed_cycles = 0
        self._prefetch: Optional[asyncio.Task] = None

    @property
    def current_step(self) -> FlowStep:
        return self.steps[self.index]

    def advance(self) -> FlowStep:
        """Move to the next step, wrapping to the first after the last"""
        previous = self.current_step
        if self.index + 1 >= len(self.steps):
            self.completed_cycles += 1
            self.reset()
        else:
            self.index += 1
        logger.info(f"Flow advanced from {previous.value} to {self.current_step.value}")
        return self.current_step

    def reset(self) -> None:
        """Back to the first step with no guest"""
        self.index = 0
        self.username = ""
        self._cancel_prefetch()

    def skip_to(self, step: FlowStep, username: Optional[str] = None) -> None:
        if step not in self.steps:
            raise ValueError(f"Flow step {step.value} is not part of this flow")
        if username:
            self.set_username(username)
        self.index = self.steps.index(step)
        logger.info(f"Skipped to flow step {step.value}")

    def set_username(self, username: str) -> None:
        """Store the guest and start fetching their roast script"""
        if username == self.username and self._prefetch is not None:
            return
        self._cancel_prefetch()
        self.username = username
        if username and self.load_script is not None:
            self._prefetch = asyncio.ensure_future(self.load_script(username))

    def _cancel_prefetch(self) -> None:
        if self._prefetch is not None and not self._prefetch.done():
            self._prefetch.cancel()
        self._prefetch = None

    async def roast_script(self) -> List[RoastItem]:
        """The prefetched script, loading it now if nothing is in flight"""
        if not self.username:
            return missing_guest_script()
        if self._prefetch is None:
            if self.load_script is None:
                return missing_guest_script()
            self._prefetch = asyncio.ensure_future(self.load_script(self.username))
        return await self._prefetch

    async def run_step(self) -> FlowStep:
        """Run the active screen, then advance"""
        step = self.current_step
        screen = self.screens.get(step)
        if screen is None:
            logger.warning(f"No screen registered for {step.value}; skipping")
        else:
            logger.info(f"Running flow step {step.value}")
            result = await screen.run(self)
            if step is FlowStep.GIT_INPUT:
                self.set_username((result or "").strip())
        return self.advance()

    async def run(self, cycles: int = 1) -> None:
        """Run steps until the flow has wrapped around `cycles` times"""
        target = self.completed_cycles + cycles
        try:
            while self.completed_cycles < target:
                await self.run_step()
        finally:
            self._cancel_prefetch()
