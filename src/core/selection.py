"""Selected-conversation allow-list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

EMPTY_SELECTION_POLICIES = ("all", "none")


@dataclass(frozen=True)
class ConversationSelection:
    """Conversations the bot acts on.

    What an empty selection means is configured, never implied:
    ``"all"`` admits every group, ``"none"`` admits nothing.
    """

    ids: FrozenSet[str] = frozenset()
    empty_policy: str = "all"

    def __post_init__(self) -> None:
        if self.empty_policy not in EMPTY_SELECTION_POLICIES:
            raise ValueError(f"Unsupported empty selection policy: {self.empty_policy}")

    @classmethod
    def of(cls, ids: Iterable[str], empty_policy: str = "all") -> "ConversationSelection":
        return cls(ids=frozenset(str(item) for item in ids if str(item).strip()), empty_policy=empty_policy)

    def allows(self, conversation_id: str) -> bool:
        if not self.ids:
            return self.empty_policy == "all"
        return conversation_id in self.ids
