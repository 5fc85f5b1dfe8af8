from __future__ import annotations

from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import b64_data_url, load_image_bytes, normalize_image_bytes


Role = Literal["host", "user"]
EntryKind = Literal["text", "image", "guess", "result", "flight_destination"]


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Possibility(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str
    confidence: float = Field(ge=0.0)  # percent, independent per candidate


class GuessAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["guess"] = "guess"
    possibilities: List[Possibility]
    clues: List[str] = Field(default_factory=list)
    final_guess: str
    host_commentary: str
    confidence_score: float = Field(ge=0.0)  # percent
    coordinates: Optional[Coordinates] = None


class RevealResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["result"] = "result"
    is_correct: bool
    location_name: str
    host_reaction: str
    fun_facts: List[str] = Field(default_factory=list)
    learning_note: Optional[str] = None


class FlightDestination(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["flight_destination"] = "flight_destination"
    location_name: str
    city: str
    country: str
    description: str
    pilot_announcement: str
    image: Optional[str] = Field(None, description="data URL of a generated picture")
    coordinates: Optional[Coordinates] = None


Payload = Annotated[
    Union[GuessAnalysis, RevealResult, FlightDestination],
    Field(discriminator="kind"),
]

_PAYLOAD_KINDS = {"guess", "result", "flight_destination"}


class TranscriptEntry(BaseModel):
    """One immutable line of the conversation.

    ``kind`` tells the front-end how to draw the entry. Entries of kind
    ``guess``, ``result`` and ``flight_destination`` carry the payload of the
    same kind; ``text`` and ``image`` entries never carry one.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    kind: EntryKind = "text"
    text: Optional[str] = None
    payload: Optional[Payload] = None

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "TranscriptEntry":
        if self.kind in _PAYLOAD_KINDS:
            if self.payload is None or self.payload.kind != self.kind:
                raise ValueError(f"'{self.kind}' entry needs a matching payload")
        elif self.payload is not None:
            raise ValueError(f"'{self.kind}' entry cannot carry a payload")
        return self


class SessionArtifact(BaseModel):
    """The photo bound to the current round."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/jpeg"
    preview: str
    name: Optional[str] = None

    @classmethod
    def from_path(cls, path: str | Path) -> "SessionArtifact":
        data = load_image_bytes(path)
        return cls(data=data, preview=b64_data_url(data), name=Path(path).name)

    @classmethod
    def from_bytes(cls, raw: bytes, name: Optional[str] = None) -> "SessionArtifact":
        data = normalize_image_bytes(raw)
        return cls(data=data, preview=b64_data_url(data), name=name)
