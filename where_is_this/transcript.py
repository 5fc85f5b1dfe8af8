from __future__ import annotations

import uuid
from typing import Iterator, List, Optional, Tuple

from .types import EntryKind, Payload, Role, TranscriptEntry


class ConversationLog:
    """Append-only, ordered transcript of one game.

    Insertion order is display order. Entries are frozen once appended and
    the only way to drop them is :meth:`clear`, which the game calls when a
    new game starts.
    """

    def __init__(self) -> None:
        self._entries: List[TranscriptEntry] = []

    def append(
        self,
        role: Role,
        text: Optional[str] = None,
        *,
        kind: EntryKind = "text",
        payload: Optional[Payload] = None,
    ) -> TranscriptEntry:
        entry = TranscriptEntry(
            id=uuid.uuid4().hex[:12],
            role=role,
            kind=kind,
            text=text,
            payload=payload,
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def since(self, index: int) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries[index:])

    @property
    def last(self) -> Optional[TranscriptEntry]:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(tuple(self._entries))
