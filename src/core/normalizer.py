"""Text normalization used by matching and term filters."""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional, Sequence, Tuple

# Each rule is applied in order on lowercased text.
ARABIC_RULES: Sequence[Tuple[re.Pattern[str], str]] = (
    (re.compile("[أإآٱ]"), "ا"),  # alef variants
    (re.compile("ة"), "ه"),  # taa marbuta -> haa
    (re.compile("ى"), "ي"),  # alef maksura -> yaa
    (re.compile("ؤ"), "و"),  # waw with hamza
    (re.compile("ئ"), "ي"),  # yaa with hamza
    (re.compile("[\u064b-\u0652\u0670]"), ""),  # tashkeel, shadda, dagger alef
    (re.compile("\u0640"), ""),  # tatweel
)

_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def _strip_marks(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def normalize_text(
    text: Optional[str],
    arabic: bool = True,
    rules: Sequence[Tuple[re.Pattern[str], str]] = ARABIC_RULES,
) -> str:
    """Return the canonical form of text used for matching.

    With ``arabic`` disabled only lowercasing and trimming apply. Otherwise
    letters are folded with ``rules``, combining marks are dropped from the
    decomposed text (so "José" becomes "jose"), punctuation becomes a space
    and whitespace is collapsed. Normalizing an already normalized string
    returns it unchanged.
    """

    if not text:
        return ""
    lowered = text.lower()
    if not arabic:
        return lowered.strip()

    for pattern, replacement in rules:
        lowered = pattern.sub(replacement, lowered)
    lowered = _strip_marks(lowered)
    lowered = _NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", lowered).strip()


def tokenize(normalized: str) -> List[str]:
    """Split already normalized text into whitespace tokens."""

    return normalized.split()


def contains_term(normalized_text: str, normalized_term: str) -> bool:
    """Return True when the term appears in the text as whole tokens."""

    if not normalized_term:
        return False
    padded = f" {' '.join(tokenize(normalized_text))} "
    return f" {' '.join(tokenize(normalized_term))} " in padded
