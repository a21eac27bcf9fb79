"""String similarity for alias matching.

All functions here are symmetric and return a score in [0, 1]:
1.0 for identical strings, 0.0 when either side is empty or nothing matches.

The resolver never calls these directly. It goes through an alias index,
which takes the similarity function as a parameter, so a native backend
(pg_trgm, ...) can replace the default without touching the decision logic.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from rapidfuzz.distance import Levenshtein

SimilarityFunction = Callable[[str, str], float]

_NON_WORD = re.compile(r"[^0-9a-z]+")


def normalize(text: str) -> str:
    """Normalise a surface form for matching: trim and case-fold."""
    return text.strip().casefold()


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute; unit costs)."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - distance / max(len(a), len(b)).

    Examples:
        "alice smith" vs "alice smith" -> 1.0
        "alice smith" vs "alice smyth" -> 0.909
        "alice" vs "bob" -> 0.0
    """
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def trigrams(text: str) -> set[str]:
    """pg_trgm-style trigrams: each word padded with two leading and one trailing space."""
    grams: set[str] = set()
    for word in _NON_WORD.split(text.casefold()):
        if not word:
            continue
        padded = f"  {word} "
        grams.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return grams


def trigram_similarity(a: str, b: str) -> float:
    """Jaccard similarity of trigram sets, as PostgreSQL's ``similarity()`` computes it."""
    grams_a = trigrams(a)
    grams_b = trigrams(b)
    if not grams_a or not grams_b:
        return 0.0
    return len(grams_a & grams_b) / len(grams_a | grams_b)


SIMILARITY_FUNCTIONS: dict[str, SimilarityFunction] = {
    "levenshtein": levenshtein_similarity,
    "trigram": trigram_similarity,
}


def get_similarity_function(name: str) -> SimilarityFunction:
    """Look up a similarity function by its configured name."""
    try:
        return SIMILARITY_FUNCTIONS[name]
    except KeyError:
        msg = (
            f"Unknown similarity function '{name}', "
            f"expected one of {sorted(SIMILARITY_FUNCTIONS)}"
        )
        raise ValueError(msg) from None
