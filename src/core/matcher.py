"""Client roster matching (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from core.normalizer import normalize_text, tokenize


@dataclass(frozen=True)
class Client:
    """Roster entry watched for mentions, with an optional reaction override."""

    name: str
    emoji: Optional[str] = None


@dataclass(frozen=True)
class ClientMatch:
    """The winning roster entry for a message and the reaction to use."""

    client: Client
    score: float
    emoji: str


def build_roster(raw_clients: Iterable[dict], arabic: bool = True) -> List[Client]:
    """Build the roster from control-surface payloads.

    Entries whose name is empty after normalization can never match anything,
    so they are dropped here instead of being skipped on every message.
    """

    roster: List[Client] = []
    for entry in raw_clients or []:
        name = str(entry.get("name") or "").strip()
        if not normalize_text(name, arabic=arabic):
            continue
        emoji = entry.get("emoji") or None
        roster.append(Client(name=name, emoji=emoji))
    return roster


def coverage_score(normalized_name: str, normalized_text: str) -> float:
    """Return the fraction of name tokens found in the text.

    A full-name substring hit short-circuits to 1.0. Tokens are matched as
    substrings of the text, so "ahmed" also hits "ahmeds".
    """

    if not normalized_name or not normalized_text:
        return 0.0
    if normalized_name in normalized_text:
        return 1.0
    tokens = tokenize(normalized_name)
    if not tokens:
        return 0.0
    found = sum(1 for token in tokens if token in normalized_text)
    return found / len(tokens)


def match_client(
    roster: Iterable[Client],
    text: str,
    threshold: float,
    default_emoji: str,
    arabic: bool = True,
) -> Optional[ClientMatch]:
    """Return the first roster entry whose coverage clears the threshold.

    Roster order decides ties: the first client at or above the threshold
    wins even if a later one scores higher. A zero score never matches, even
    with a zero threshold.
    """

    normalized_text = normalize_text(text, arabic=arabic)
    if not normalized_text:
        return None

    for client in roster:
        score = coverage_score(normalize_text(client.name, arabic=arabic), normalized_text)
        if score > 0 and score >= threshold:
            return ClientMatch(client=client, score=score, emoji=client.emoji or default_emoji)
    return None
