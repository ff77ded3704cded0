from __future__ import annotations
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple

from shared.models import Message, SystemKind, SystemMessage

# Server ids are never strings with this prefix
LOCAL_ID_PREFIX = "local-"

# One counter per process: ids stay unique across every feed and room
_local_ids = itertools.count(1)


def mint_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{next(_local_ids)}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def presence_text(user_name: str, kind: SystemKind) -> str:
    if kind is SystemKind.CONNECTED:
        return f"{user_name} is connected"
    return f"{user_name} has disconnected"


@dataclass
class MessageFeed:
    """
    Ordered, append-only log for the active room.

    Entries are never edited or re-sorted; the only way to lose one is a
    snapshot replace or a clear when the room is left.
    """
    _entries: List[Message] = field(default_factory=list)

    def append(self, message: Message) -> None:
        self._entries.append(message)

    def append_system(self, user_name: str, kind: SystemKind) -> SystemMessage:
        """Synthesize a presence entry with a client-side id and timestamp."""
        entry = SystemMessage(
            id=mint_local_id(),
            text=presence_text(user_name, kind),
            timestamp=_now_iso(),
            kind=kind,
        )
        self._entries.append(entry)
        return entry

    def replace(self, messages: Iterable[Message]) -> None:
        self._entries = list(messages)

    def clear(self) -> None:
        self._entries = []

    def snapshot(self) -> Tuple[Message, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Optional[Message]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._entries))
