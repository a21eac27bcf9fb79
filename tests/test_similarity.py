"""Tests for string similarity functions."""

from __future__ import annotations

import pytest

from canonlink.resolution.similarity import (
    get_similarity_function,
    levenshtein_distance,
    levenshtein_similarity,
    normalize,
    trigram_similarity,
    trigrams,
)


def test_normalize_trims_and_casefolds() -> None:
    assert normalize("  Alice Smith \n") == "alice smith"
    assert normalize("Straße") == normalize("STRASSE")


@pytest.mark.parametrize(
    ("a", "b", "distance"),
    [("", "", 0), ("abc", "", 3), ("kitten", "sitting", 3), ("alice", "alise", 1)],
)
def test_levenshtein_distance(a: str, b: str, distance: int) -> None:
    assert levenshtein_distance(a, b) == distance
    assert levenshtein_distance(b, a) == distance


class TestLevenshteinSimilarity:
    def test_identical(self) -> None:
        assert levenshtein_similarity("alice smith", "alice smith") == 1.0

    def test_empty_side_scores_zero(self) -> None:
        assert levenshtein_similarity("", "alice") == 0.0
        assert levenshtein_similarity("alice", "") == 0.0
        assert levenshtein_similarity("", "") == 0.0

    def test_one_edit(self) -> None:
        assert levenshtein_similarity("alice", "alise") == pytest.approx(0.8)

    def test_uses_longer_length(self) -> None:
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_reordered_names_score_low(self) -> None:
        assert levenshtein_similarity("alice smith", "smith, alice") < 0.5


class TestTrigramSimilarity:
    def test_padded_trigrams(self) -> None:
        assert trigrams("cat") == {"  c", " ca", "cat", "at "}

    def test_words_split_on_punctuation(self) -> None:
        assert trigrams("Smith, Alice") == trigrams("alice smith")

    def test_identical(self) -> None:
        assert trigram_similarity("gandalf", "gandalf") == 1.0

    def test_word_order_does_not_matter(self) -> None:
        assert trigram_similarity("alice smith", "smith, alice") == 1.0

    def test_empty_side_scores_zero(self) -> None:
        assert trigram_similarity("", "alice") == 0.0
        assert trigram_similarity("...", "alice") == 0.0

    def test_partial_overlap(self) -> None:
        score = trigram_similarity("alice", "alicia")
        assert 0.0 < score < 1.0
        assert score == trigram_similarity("alicia", "alice")


def test_similarity_lookup() -> None:
    assert get_similarity_function("levenshtein") is levenshtein_similarity
    assert get_similarity_function("trigram") is trigram_similarity
    with pytest.raises(ValueError, match="Unknown similarity function"):
        get_similarity_function("soundex")


@pytest.mark.parametrize(
    ("a", "b"),
    [("alice smith", "alice smyth"), ("gandalf", "gandalf the grey"), ("frodo", "bilbo")],
)
def test_levenshtein_similarity_is_normalised_distance(a: str, b: str) -> None:
    expected = 1 - levenshtein_distance(a, b) / max(len(a), len(b))
    assert levenshtein_similarity(a, b) == pytest.approx(expected)
    assert levenshtein_similarity(b, a) == pytest.approx(expected)
