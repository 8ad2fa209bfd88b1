"""
Card name ranking.

Orders search candidates by how well their names match a free-text query.
Every query word must appear in the name; names where a word appears
inside the name rank above names that merely start with it. That
preference is a product decision and the weights below encode it.

Scoring per query word:
- Whole-word occurrence: 20 points each
- Substring-only occurrence: 5 points each
- Word found but name does not start with it: +50 (+20 more if whole-word)
- Name starts with the word: +30

Ties are ordered alphabetically, ignoring case.
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")

EXACT_MATCH_WEIGHT = 20
PARTIAL_MATCH_WEIGHT = 5
INTERIOR_MATCH_BONUS = 50
INTERIOR_EXACT_BONUS = 20
PREFIX_MATCH_BONUS = 30

# Lower number wins when two printings share a name
SET_PRIORITY: dict[str, int] = {
    # Alpha/Beta/Unlimited and early expansions
    "LEA": 1, "LEB": 2, "2ED": 3, "ARN": 4, "ATQ": 5, "LEG": 6,
    # Classic sets
    "DRK": 10, "FEM": 11, "ICE": 12, "CHR": 13, "HML": 14, "ALL": 15,
    # Core sets
    "3ED": 20, "4ED": 21, "5ED": 22, "6ED": 23, "7ED": 24, "8ED": 25, "9ED": 26, "10E": 27,
    "M10": 30, "M11": 31, "M12": 32, "M13": 33, "M14": 34, "M15": 35, "ORI": 36,
    "M19": 40, "M20": 41, "M21": 42,
}  # fmt: skip
_DEFAULT_SET_PRIORITY = 1000


@dataclass(frozen=True, slots=True)
class MatchDetails:
    """Counts behind a score, kept for debugging and tests."""

    exact_matches: int
    partial_matches: int
    starts_with_bonus: bool


@dataclass(frozen=True, slots=True)
class ScoredItem:
    """A candidate that matched every query word."""

    item: Any
    name: str
    score: int
    details: MatchDetails


def _field(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def _item_name(item: Any) -> str:
    return _field(item, "name") or ""


def tokenize_query(query: str | None) -> list[str]:
    """Lowercase a query and split it on whitespace."""
    return (query or "").lower().split()


def _alphabetical_key(name: str) -> tuple[str, str]:
    return (name.casefold(), name)


def score_name(name: str | None, tokens: Sequence[str]) -> ScoredItem | None:
    """
    Score a single name against query tokens.

    Args:
        name: Candidate name. None is treated as an empty string.
        tokens: Lowercased query words from tokenize_query

    Returns:
        ScoredItem with item=None, or None if any token is missing from the name.
    """
    name = name or ""
    lowered = name.lower()
    score = 0
    exact_total = 0
    partial_total = 0
    starts_with = False

    for token in tokens:
        if token not in lowered:
            return None

        escaped = re.escape(token)
        partial = len(re.findall(escaped, lowered))
        exact = len(re.findall(rf"\b{escaped}\b", lowered, re.ASCII))
        exact_total += exact
        partial_total += partial

        score += exact * EXACT_MATCH_WEIGHT + (partial - exact) * PARTIAL_MATCH_WEIGHT

        if lowered.startswith(token):
            score += PREFIX_MATCH_BONUS
            starts_with = True
        else:
            score += INTERIOR_MATCH_BONUS
            if exact > 0:
                score += INTERIOR_EXACT_BONUS

    return ScoredItem(
        item=None,
        name=name,
        score=score,
        details=MatchDetails(
            exact_matches=exact_total,
            partial_matches=partial_total,
            starts_with_bonus=starts_with,
        ),
    )


def score_items(items: Iterable[T], query: str | None) -> list[ScoredItem]:
    """
    Score every item whose name contains all query words.

    Returns scored items in ranked order. An empty query scores nothing
    and returns every item with score 0 in alphabetical order.
    """
    tokens = tokenize_query(query)
    scored: list[ScoredItem] = []

    for item in items:
        name = _item_name(item)
        if not tokens:
            scored.append(
                ScoredItem(item=item, name=name, score=0, details=MatchDetails(0, 0, False))
            )
            continue

        result = score_name(name, tokens)
        if result is not None:
            scored.append(
                ScoredItem(item=item, name=name, score=result.score, details=result.details)
            )

    scored.sort(key=lambda s: (-s.score, *_alphabetical_key(s.name)))
    return scored


def rank_by_name(items: Iterable[T], query: str | None) -> list[T]:
    """
    Filter and order items by how well their name matches the query.

    Args:
        items: Objects with a ``name`` attribute, or mappings with a "name" key
        query: Free-text query, any case, possibly several words

    Returns:
        New list of the matching items, best match first. The input is not
        modified.

    Example:
        >>> rank_by_name(cards, "bolt")  # Lightning Bolt before Boltwing Hatchling
    """
    return [scored.item for scored in score_items(items, query)]


def consolidate_printings(cards: Iterable[T]) -> list[T]:
    """
    Collapse printings that share a name into one representative card.

    Prefers printings from older, iconic sets (see SET_PRIORITY), then a
    printing with an image. Otherwise the first printing seen is kept.
    Order of first appearance is preserved.
    """
    chosen: dict[str, T] = {}

    for card in cards:
        key = _item_name(card).lower()
        existing = chosen.get(key)
        if existing is None or _is_preferred_printing(card, existing):
            chosen[key] = card

    return list(chosen.values())


def _is_preferred_printing(card: Any, existing: Any) -> bool:
    card_priority = SET_PRIORITY.get(_field(card, "set_code") or "", _DEFAULT_SET_PRIORITY)
    existing_priority = SET_PRIORITY.get(_field(existing, "set_code") or "", _DEFAULT_SET_PRIORITY)

    if card_priority != existing_priority:
        return card_priority < existing_priority

    return bool(_field(card, "image_url")) and not _field(existing, "image_url")
