"""Tests for fuzzy elder-name matching used by account recovery."""
import pytest

from wellcheck.analysis.name_matching import (
    MatchOutcome,
    StoredProfile,
    levenshtein_distance,
    levenshtein_similarity,
    match,
    normalize_name,
    score,
)


def _profiles(*names):
    return [StoredProfile(profile_id=f"family_{i}", name=n) for i, n in enumerate(names)]


class TestNormalize:
    def test_strips_whitespace_and_brackets(self):
        assert normalize_name(" 김말자 (할머니) ") == "김말자할머니"

    def test_casefolds(self):
        assert normalize_name("Kim Malja") == "kimmalja"


class TestLevenshtein:
    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("김철수", "김철호", 1),
    ])
    def test_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected
        assert levenshtein_distance(b, a) == expected

    def test_similarity_bounds(self):
        assert levenshtein_similarity("", "") == 1.0
        assert levenshtein_similarity("abc", "") == 0.0
        assert levenshtein_similarity("abc", "abc") == 1.0


class TestScore:
    def test_exact_after_normalization(self):
        assert score("김 말자", "김말자") == 1.0

    def test_wildcard_positional(self):
        assert score("김○수", "김철수") == 1.0

    def test_containment(self):
        assert score("말자", "김말자") == pytest.approx(2 / 3)

    def test_surname_with_wildcard(self):
        # different lengths, so only the surname rule can fire
        assert score("김*", "김철수") == pytest.approx(0.8)

    def test_honorific_same_base(self):
        assert score("김말자할머니", "김말자 어머니") == pytest.approx(0.9)

    def test_longest_honorific_stripped_first(self):
        # "김할아버지" has base "김", not "김할"
        assert score("김할아버지", "김할머니") == pytest.approx(0.9)

    def test_same_given_name_different_surname(self):
        assert score("김영희", "박영희") == pytest.approx(2 / 3)

    def test_empty_input(self):
        assert score("", "김철수") == 0.0
        assert score("  ", "김철수") == 0.0

    def test_score_in_unit_interval(self):
        for a, b in [("김○수", "이철수"), ("a", "b"), ("할머니", "할머니")]:
            assert 0.0 <= score(a, b) <= 1.0


class TestMatch:
    def test_unique(self):
        result = match("김○수", _profiles("김철수", "박영희"))
        assert result.outcome == MatchOutcome.UNIQUE
        assert result.best.stored_name == "김철수"
        assert result.best.match_score == 1.0

    def test_none(self):
        result = match("김영희", _profiles("박영희", "이영희"))
        assert result.outcome == MatchOutcome.NONE
        assert result.candidates == []
        assert result.best is None

    def test_honorific_against_bracketed_name_is_no_match(self):
        assert match("김할머니", _profiles("김말자(할머니)")).outcome == MatchOutcome.NONE

    def test_ambiguous_sorted_by_score(self):
        result = match("김말자할머니", _profiles("김말자 어머니", "김말자(할머니)"))
        assert result.outcome == MatchOutcome.AMBIGUOUS
        assert [c.stored_name for c in result.candidates] == ["김말자(할머니)", "김말자 어머니"]
        assert result.candidates[0].match_score == 1.0

    def test_ambiguous_capped_at_five(self):
        result = match("김철수", _profiles(*["김철수"] * 8))
        assert result.outcome == MatchOutcome.AMBIGUOUS
        assert len(result.candidates) == 5

    def test_empty_candidate_list(self):
        assert match("김철수", []).outcome == MatchOutcome.NONE

    def test_candidate_keeps_document_data(self):
        profiles = [StoredProfile("family_x", "김철수", {"connectionCode": "1234"})]
        assert match("김철수", profiles).best.data == {"connectionCode": "1234"}
