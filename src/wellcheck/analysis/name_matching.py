"""
Fuzzy name matching for account recovery.

A family member re-pairing a phone knows the pairing code and roughly how
the elder's name was typed at setup: "김철수", "김○수", "김 할머니",
"김말자(할머니)". There is no system identifier to fall back on, so candidate
profiles sharing the pairing code are scored against the typed name and the
caller gets back a unique match, no match, or a ranked shortlist.

score() takes the highest of:
  1. exact match after normalization                          1.0
  2. one string contains the other                            min/max length
  3. same surname (leading char) + wildcard in either         0.8
  4. both end in an honorific: compare the bases              0.9 / 0.8 * lev
  5. equal length, position by position, wildcards match      fraction matched
  6. Levenshtein similarity                                   1 - dist/max len
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

MATCH_THRESHOLD = 0.7
MAX_DISPLAY_CANDIDATES = 5

WILDCARDS = ("○", "*", "◯")
HONORIFICS = ("할머니", "할아버지", "어머니", "아버지", "엄마", "아빠", "부모님")

_STRIP_RE = re.compile(r"[\s()\[\]{}]+")


class MatchOutcome(str, Enum):
    UNIQUE = "unique"
    NONE = "none"
    AMBIGUOUS = "ambiguous"


@dataclass
class StoredProfile:
    """A profile fetched by pairing code; `data` is the raw document."""
    profile_id: str
    name: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecoveryCandidate:
    profile_id: str
    stored_name: str
    match_score: float
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MatchResult:
    outcome: MatchOutcome
    candidates: List[RecoveryCandidate] = field(default_factory=list)

    @property
    def best(self) -> Optional[RecoveryCandidate]:
        return self.candidates[0] if self.candidates else None


def normalize_name(name: str) -> str:
    """Drop whitespace and brackets, case-fold."""
    return _STRIP_RE.sub("", name).casefold()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert/delete/substitute, unit cost)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    if not a:
        return 1.0 if not b else 0.0
    if not b:
        return 0.0
    return 1.0 - levenshtein_distance(a, b) / max(len(a), len(b))


def _has_wildcard(name: str) -> bool:
    return any(w in name for w in WILDCARDS)


def _containment_score(a: str, b: str) -> float:
    if a in b or b in a:
        return min(len(a), len(b)) / max(len(a), len(b))
    return 0.0


def _surname_wildcard_score(a: str, b: str) -> float:
    if a[0] != b[0]:
        return 0.0
    if _has_wildcard(a) or _has_wildcard(b):
        return 0.8
    return 0.0


def _strip_honorific(name: str) -> Optional[str]:
    # Longest first so "할아버지" is not mistaken for "아버지"
    for honorific in sorted(HONORIFICS, key=len, reverse=True):
        if name.endswith(honorific):
            return name[: -len(honorific)]
    return None


def _honorific_score(a: str, b: str) -> float:
    base_a = _strip_honorific(a)
    base_b = _strip_honorific(b)
    if base_a is None or base_b is None:
        return 0.0
    if base_a == base_b:
        return 0.9
    if base_a and base_b:
        return 0.8 * levenshtein_similarity(base_a, base_b)
    return 0.0


def _positional_score(a: str, b: str) -> float:
    if len(a) != len(b) or len(a) < 2:
        return 0.0
    matched = sum(
        1 for ca, cb in zip(a, b)
        if ca == cb or ca in WILDCARDS or cb in WILDCARDS
    )
    return matched / len(a)


def score(input_name: str, stored_name: str) -> float:
    """Confidence in [0, 1] that `input_name` refers to `stored_name`."""
    a = normalize_name(input_name)
    b = normalize_name(stored_name)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    return max(
        _containment_score(a, b),
        _surname_wildcard_score(a, b),
        _honorific_score(a, b),
        _positional_score(a, b),
        levenshtein_similarity(a, b),
    )


def match(
    input_name: str,
    candidates: Sequence[StoredProfile],
    threshold: float = MATCH_THRESHOLD,
    limit: int = MAX_DISPLAY_CANDIDATES,
) -> MatchResult:
    """
    Score every candidate and decide.

    Returns:
        UNIQUE with one candidate, NONE with an empty list, or AMBIGUOUS with
        up to `limit` candidates sorted by descending score.
    """
    kept = []
    for profile in candidates:
        s = score(input_name, profile.name)
        if s >= threshold:
            kept.append(RecoveryCandidate(
                profile_id=profile.profile_id,
                stored_name=profile.name,
                match_score=s,
                data=profile.data,
            ))

    if not kept:
        return MatchResult(outcome=MatchOutcome.NONE)
    if len(kept) == 1:
        return MatchResult(outcome=MatchOutcome.UNIQUE, candidates=kept)

    kept.sort(key=lambda c: c.match_score, reverse=True)
    return MatchResult(outcome=MatchOutcome.AMBIGUOUS, candidates=kept[:limit])
