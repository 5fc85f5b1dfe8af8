"""The game round state machine.

A :class:`Game` owns the phase, the photo of the current round and the
conversation log. Each ``submit_*`` method checks that the phase accepts it,
writes the "I tried X" entries straight away, then starts the model call in a
task. Outcome entries are written only when that call settles, and only if
no new round has started in the meantime.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Optional, Set, TypeVar

from .coords import clean_coordinate_text, coordinate_components
from .model_client import InferenceError, InferenceGateway
from .prompts import (
    HOST_ANALYSIS_FAILED,
    HOST_ASK_REVEAL,
    HOST_FLIGHT_FAILED,
    HOST_PHOTO_RECEIVED,
    HOST_REVEAL_FAILED,
    HOST_TAKEOFF,
    USER_FLIGHT_TEMPLATE,
)
from .transcript import ConversationLog
from .types import FlightDestination, GuessAnalysis, RevealResult, SessionArtifact


logger = logging.getLogger(__name__)

PROMPT_DELAY_SECONDS = float(os.environ.get("WHERE_IS_THIS_PROMPT_DELAY", "1.0"))

T = TypeVar("T")


class Phase(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    AWAITING_REVEAL = "awaiting_reveal"
    REVEALING = "revealing"
    REVEALED = "revealed"
    FLYING = "flying"
    ARRIVED = "arrived"
    FAILED = "failed"


class Action(str, Enum):
    SUBMIT_IMAGE = "submit_image"
    SUBMIT_REVEAL = "submit_reveal"
    SUBMIT_FLIGHT = "submit_flight"


ACCEPTS: Dict[Action, FrozenSet[Phase]] = {
    Action.SUBMIT_IMAGE: frozenset({Phase.IDLE, Phase.FAILED}),
    Action.SUBMIT_REVEAL: frozenset({Phase.AWAITING_REVEAL, Phase.FAILED}),
    Action.SUBMIT_FLIGHT: frozenset({Phase.IDLE}),
}


class InvalidAction(ValueError):
    def __init__(self, action: Action, phase: Phase, reason: Optional[str] = None) -> None:
        self.action = action
        self.phase = phase
        super().__init__(reason or f"{action.value} is not accepted while {phase.value}")


@dataclass
class InputDrafts:
    """Text the player has typed but not sent yet."""

    reveal: str = ""
    coordinates: str = ""

    def clear(self) -> None:
        self.reveal = ""
        self.coordinates = ""


class Game:
    def __init__(self, gateway: InferenceGateway, *, prompt_delay: Optional[float] = None) -> None:
        self.gateway = gateway
        self.prompt_delay = PROMPT_DELAY_SECONDS if prompt_delay is None else prompt_delay
        self.log = ConversationLog()
        self.drafts = InputDrafts()
        self._phase = Phase.IDLE
        self._artifact: Optional[SessionArtifact] = None
        self._round = 0
        self._loading = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def artifact(self) -> Optional[SessionArtifact]:
        return self._artifact

    @property
    def round_id(self) -> int:
        return self._round

    @property
    def loading(self) -> bool:
        """True between an attempt being announced and its outcome."""
        return self._loading

    def accepts(self, action: Action) -> bool:
        return self._phase in ACCEPTS[action]

    def allowed_actions(self) -> FrozenSet[Action]:
        return frozenset(a for a in Action if self.accepts(a))

    def submit_image(self, artifact: SessionArtifact) -> asyncio.Task:
        self._require(Action.SUBMIT_IMAGE)
        round_id = self._new_round()
        self._artifact = artifact
        self.log.append("host", HOST_PHOTO_RECEIVED)
        self.log.append("user", kind="image")
        self._phase = Phase.ANALYZING
        return self._start(round_id, self._analyze(round_id, artifact))

    def submit_reveal(self, location_text: str) -> asyncio.Task:
        self._require(Action.SUBMIT_REVEAL)
        artifact = self._artifact
        if artifact is None:
            raise InvalidAction(Action.SUBMIT_REVEAL, self._phase, "there is no photo to reveal")
        location = location_text.strip()
        if not location:
            raise InvalidAction(Action.SUBMIT_REVEAL, self._phase, "location text is empty")
        round_id = self._round
        self.drafts.reveal = ""
        self.log.append("user", location)
        self._phase = Phase.REVEALING
        return self._start(round_id, self._reveal(round_id, artifact, location))

    def submit_flight(self, coordinate_text: str) -> asyncio.Task:
        self._require(Action.SUBMIT_FLIGHT)
        if not coordinate_text.strip():
            raise InvalidAction(Action.SUBMIT_FLIGHT, self._phase, "coordinates are empty")
        cleaned = clean_coordinate_text(coordinate_text)
        lat, lng = coordinate_components(cleaned)
        round_id = self._new_round()
        self._artifact = None
        self.drafts.coordinates = ""
        self.log.append("user", USER_FLIGHT_TEMPLATE.replace("<<COORDS>>", cleaned))
        self.log.append("host", HOST_TAKEOFF)
        self._phase = Phase.FLYING
        return self._start(round_id, self._fly(round_id, lat, lng))

    def reset(self) -> None:
        """Start over. Calls still in flight finish, but their results are dropped."""
        self._new_round()
        self.log.clear()
        self.drafts.clear()
        self._artifact = None
        self._loading = False
        self._phase = Phase.IDLE

    async def wait(self) -> None:
        """Wait until every call started so far has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _require(self, action: Action) -> None:
        asyncio.get_running_loop()  # model calls need a loop; fail before touching state
        if not self.accepts(action):
            raise InvalidAction(action, self._phase)

    def _new_round(self) -> int:
        self._round += 1
        return self._round

    def _current(self, round_id: int) -> bool:
        if round_id != self._round:
            logger.info("Dropping result from round %s (now in round %s)", round_id, self._round)
            return False
        return True

    def _start(self, round_id: int, work: Awaitable[None]) -> asyncio.Task:
        self._loading = True
        task = asyncio.get_running_loop().create_task(work, name=f"round-{round_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _call(self, round_id: int, fn: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Await ``fn`` for ``round_id``.

        Returns None when the round was superseded while waiting, whatever the
        outcome. Failures of the current round are raised as InferenceError.
        """
        try:
            result = await fn()
        except Exception as e:
            if not self._current(round_id):
                return None
            self._loading = False
            logger.info("Model call in round %s failed: %s", round_id, e)
            if isinstance(e, InferenceError):
                raise
            raise InferenceError(str(e)) from e
        if not self._current(round_id):
            return None
        self._loading = False
        return result

    async def _analyze(self, round_id: int, artifact: SessionArtifact) -> None:
        try:
            analysis: Optional[GuessAnalysis] = await self._call(
                round_id, lambda: self.gateway.analyze_image(artifact.data, artifact.mime_type)
            )
        except InferenceError:
            self.log.append("host", HOST_ANALYSIS_FAILED)
            self._phase = Phase.FAILED
            return
        if analysis is None:
            return
        self.log.append("host", analysis.host_commentary)
        self.log.append("host", kind="guess", payload=analysis)

        await asyncio.sleep(self.prompt_delay)
        if not self._current(round_id):
            return
        self.log.append("host", HOST_ASK_REVEAL)
        self._phase = Phase.AWAITING_REVEAL

    async def _reveal(self, round_id: int, artifact: SessionArtifact, location: str) -> None:
        try:
            result: Optional[RevealResult] = await self._call(
                round_id, lambda: self.gateway.evaluate_reveal(artifact.data, artifact.mime_type, location)
            )
        except InferenceError:
            # same photo, the player can just try again
            self.log.append("host", HOST_REVEAL_FAILED)
            self._phase = Phase.AWAITING_REVEAL
            return
        if result is None:
            return
        self.log.append("host", result.host_reaction)
        self.log.append("host", kind="result", payload=result)
        self._phase = Phase.REVEALED

    async def _fly(self, round_id: int, lat: str, lng: str) -> None:
        try:
            destination: Optional[FlightDestination] = await self._call(
                round_id, lambda: self.gateway.resolve_coordinates(lat, lng)
            )
        except InferenceError:
            self.log.append("host", HOST_FLIGHT_FAILED)
            self._phase = Phase.IDLE
            return
        if destination is None:
            return
        self.log.append("host", destination.pilot_announcement)
        self.log.append("host", kind="flight_destination", payload=destination)
        self._phase = Phase.ARRIVED
