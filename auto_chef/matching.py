"""Attribute free-text recipe steps to the ingredient they concern."""

from __future__ import annotations

import unicodedata
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from .rc_types import TIngredientMatch as IngredientMatch

RULE_SUBSTRING = "substring"
RULE_KEYWORD = "keyword"
RULE_DEFAULT = "default"

# (terms found in the step text, terms an ingredient name must contain)
KEYWORD_FALLBACKS: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    (("nước dùng", "broth"), ("nước dùng", "broth")),
    (("rau", "vegetable"), ("rau", "vegetable")),
)


def fold(text: str) -> str:
    return unicodedata.normalize("NFC", text or "").casefold()


class IngredientMatcher(ABC):

    @abstractmethod
    def match(self, step_text: str, candidates: Sequence[str]) -> Optional[IngredientMatch]:
        """Return the ingredient a step concerns, or None when there are no candidates."""
        raise NotImplementedError


class KeywordIngredientMatcher(IngredientMatcher):
    """Substring match, then domain keyword fallbacks, then the first ingredient.

    Ties go to the first candidate in iteration order. Steps are never dropped:
    anything unmatched lands on ``candidates[0]``, which can misattribute work.
    """

    def __init__(self, fallbacks=KEYWORD_FALLBACKS) -> None:
        self.fallbacks = tuple(
            (tuple(fold(t) for t in triggers), tuple(fold(t) for t in targets)) for triggers, targets in fallbacks
        )

    def match(self, step_text: str, candidates: Sequence[str]) -> Optional[IngredientMatch]:
        if not candidates:
            return None
        text = fold(step_text)

        for ingredient in candidates:
            if fold(ingredient) and fold(ingredient) in text:
                return IngredientMatch(ingredient, RULE_SUBSTRING)

        for triggers, targets in self.fallbacks:
            if not any(term in text for term in triggers):
                continue
            for ingredient in candidates:
                name = fold(ingredient)
                if any(term in name for term in targets):
                    return IngredientMatch(ingredient, RULE_KEYWORD)

        return IngredientMatch(candidates[0], RULE_DEFAULT)


__all__ = [
    "IngredientMatch",
    "IngredientMatcher",
    "KeywordIngredientMatcher",
    "RULE_SUBSTRING",
    "RULE_KEYWORD",
    "RULE_DEFAULT",
    "fold",
]
