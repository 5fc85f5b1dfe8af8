"""Builders and an in-memory gateway shared by the tests."""
from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple, Union

from where_is_this.types import (
    Coordinates,
    FlightDestination,
    GuessAnalysis,
    Possibility,
    RevealResult,
)


def make_guess(final_guess: str = "Tokyo, Japan") -> GuessAnalysis:
    return GuessAnalysis(
        possibilities=[
            Possibility(country="Japan", confidence=80),
            Possibility(country="South Korea", confidence=35),
            Possibility(country="Taiwan", confidence=20),
        ],
        clues=["Kanji signage", "Left-hand traffic", "Vending machines"],
        final_guess=final_guess,
        host_commentary="Neon, kanji and tidy streets... I smell ramen! 🍜",
        confidence_score=85,
        coordinates=Coordinates(lat=35.6762, lng=139.6503),
    )


def make_reveal(is_correct: bool = True) -> RevealResult:
    return RevealResult(
        is_correct=is_correct,
        location_name="Shibuya, Tokyo, Japan",
        host_reaction="WOW! Nailed it! ✈️",
        fun_facts=["Shibuya Crossing sees up to 3,000 people per light change."],
        learning_note="Vertical kanji signs are a strong Japan tell.",
    )


def make_flight() -> FlightDestination:
    return FlightDestination(
        location_name="Naqsh-e Jahan Square",
        city="Isfahan",
        country="Iran",
        description="A vast Safavid square framed by turquoise domes.",
        pilot_announcement="Ladies and gentlemen, welcome to Isfahan! 🛬",
    )


Answer = Union[GuessAnalysis, RevealResult, FlightDestination, BaseException]


class FakeGateway:
    """In-memory stand-in for the model provider.

    Set ``guess``/``reveal``/``flight`` to a result or an exception. Setting
    ``hold`` to an asyncio.Event keeps every call open until it is set.
    """

    def __init__(self) -> None:
        self.guess: Answer = make_guess()
        self.reveal: Answer = make_reveal()
        self.flight: Answer = make_flight()
        self.hold: Optional[asyncio.Event] = None
        self.calls: List[Tuple] = []

    async def _answer(self, call: Tuple, value: Answer):
        self.calls.append(call)
        if self.hold is not None:
            await self.hold.wait()
        if isinstance(value, BaseException):
            raise value
        return value

    async def analyze_image(self, image: bytes, mime_type: str) -> GuessAnalysis:
        return await self._answer(("analyze", mime_type), self.guess)

    async def evaluate_reveal(self, image: bytes, mime_type: str, location_text: str) -> RevealResult:
        return await self._answer(("reveal", location_text), self.reveal)

    async def resolve_coordinates(self, lat_text: str, lng_text: str) -> FlightDestination:
        return await self._answer(("fly", lat_text, lng_text), self.flight)
