"""Closed-class words that never form a capitalised mention on their own."""

from __future__ import annotations

# Matched case-insensitively against each word of a capitalised run
STOP_WORDS: frozenset[str] = frozenset(
    word.casefold()
    for word in (
        # Articles and demonstratives
        "The", "A", "An", "This", "That", "These", "Those",
        # Pronouns
        "I", "You", "He", "She", "It", "We", "They",
        "My", "Your", "His", "Her", "Its", "Our", "Their",
        "Me", "Him", "Us", "Them",
        # WH-words
        "What", "When", "Where", "Why", "How", "Who", "Which", "Whose", "Whom",
        # Conjunctions
        "But", "Or", "And", "Nor", "For", "Yet", "So",
        # Prepositions
        "At", "In", "On", "By", "To", "From", "With",
        # Honorifics
        "Mr", "Mrs", "Ms", "Dr", "Prof", "Rev",
        # Document structure
        "Chapter", "Part", "Section", "Book", "Volume",
    )
)


def is_stop_word(word: str) -> bool:
    return word.casefold() in STOP_WORDS


def is_stop_phrase(surface_form: str) -> bool:
    """True if every word of the phrase is a stop word.

    Rejects a single stop word ("The") and runs made only of stop words
    ("In The"). "The Shire" passes because "Shire" is not a stop word.
    """
    words = surface_form.split()
    return bool(words) and all(is_stop_word(w) for w in words)
