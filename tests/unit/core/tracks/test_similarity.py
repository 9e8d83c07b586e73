"""Tests for edit-distance similarity scoring."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.tracks.similarity import combined_score, similarity


class TestSimilarity:
    """Tests for similarity() and combined_score()."""

    @pytest.mark.parametrize(
        ("first", "second", "expected"),
        [
            ("kitten", "sitting", 1 - 3 / 7),
            ("flaw", "lawn", 0.5),
            ("same", "same", 1.0),
        ],
    )
    def test_one_minus_distance_over_longest(self, first: str, second: str, expected: float) -> None:
        """Classic edit-distance examples scaled by the longer string."""
        assert similarity(first, second) == pytest.approx(expected)

    @given(st.text(max_size=20), st.text(max_size=20))
    def test_symmetric(self, first: str, second: str) -> None:
        """Similarity does not depend on argument order."""
        assert similarity(first, second) == pytest.approx(similarity(second, first))

    def test_identical_is_one(self) -> None:
        """Identical strings are fully similar."""
        assert similarity("beck", "beck") == 1.0

    def test_empty_cases(self) -> None:
        """Two empty strings are equal; one empty string shares nothing."""
        assert similarity("", "") == 1.0
        assert similarity("", "beck") == 0.0

    def test_one_edit(self) -> None:
        """One substitution in four characters gives 0.75."""
        assert similarity("beck", "back") == pytest.approx(0.75)

    @given(st.text(max_size=30), st.text(max_size=30))
    def test_bounded(self, first: str, second: str) -> None:
        """Similarity always lies in [0, 1]."""
        assert 0.0 <= similarity(first, second) <= 1.0

    def test_combined_score_normalizes(self) -> None:
        """Case and surrounding whitespace do not matter."""
        assert combined_score("Beck", "Profanity Prayers", "beck", "profanity prayers ") == 1.0

    def test_combined_score_weights_equally(self) -> None:
        """Artist and name contribute half each."""
        assert combined_score("Beck", "Loser", "Beck", "Zzzzz") == pytest.approx(0.5)
