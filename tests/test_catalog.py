import pytest

from codejudge.assessment.catalog import filter_challenges, matches, related_challenges
from codejudge.assessment.models import ChallengeFilter, Difficulty

from conftest import make_challenge

CATALOG = [
    make_challenge("fibonacci", "Fibonacci", Difficulty.EASY, ("python", "java"),
                   ("recursion", "math"), "Print the nth Fibonacci number"),
    make_challenge("two-sum", "Two Sum", Difficulty.EASY, ("python", "cpp"),
                   ("arrays", "hashing"), "Find two indices adding up to target"),
    make_challenge("n-queens", "N Queens", Difficulty.HARD, ("cpp",),
                   ("recursion", "backtracking"), "Place n queens safely"),
    make_challenge("hanoi", "Tower of Hanoi", Difficulty.MEDIUM, ("python",),
                   ("recursion",), "Move the disks using recursion"),
    make_challenge("anagram", "Valid Anagram", Difficulty.EASY, ("javascript",),
                   ("strings", "hashing"), "Check whether two strings are anagrams"),
]


def slugs(challenges):
    return [c.slug for c in challenges]


def test_empty_filter_returns_everything_sorted():
    assert slugs(filter_challenges(CATALOG, ChallengeFilter())) == [
        "anagram", "fibonacci", "hanoi", "n-queens", "two-sum",
    ]


def test_difficulty_and_tag_must_both_hold():
    f = ChallengeFilter.from_query(difficulty="easy", tags="recursion")
    assert slugs(filter_challenges(CATALOG, f)) == ["fibonacci"]


def test_values_within_a_field_are_alternatives():
    f = ChallengeFilter.from_query(difficulty="medium,hard")
    assert slugs(filter_challenges(CATALOG, f)) == ["hanoi", "n-queens"]


def test_language_filter():
    f = ChallengeFilter.from_query(language="CPP")
    assert slugs(filter_challenges(CATALOG, f)) == ["n-queens", "two-sum"]


def test_search_is_case_insensitive_over_title_and_description():
    assert slugs(filter_challenges(CATALOG, ChallengeFilter(search="QUEENS"))) == ["n-queens"]
    assert slugs(filter_challenges(CATALOG, ChallengeFilter(search="disks"))) == ["hanoi"]


def test_no_match_is_empty():
    f = ChallengeFilter.from_query(difficulty="hard", language="python")
    assert filter_challenges(CATALOG, f) == []


def test_unknown_difficulty_is_rejected():
    with pytest.raises(ValueError):
        ChallengeFilter.from_query(difficulty="impossible")


def test_filtering_is_repeatable():
    f = ChallengeFilter.from_query(tags="hashing")
    assert filter_challenges(CATALOG, f) == filter_challenges(list(reversed(CATALOG)), f)


def test_matches_single_challenge():
    assert matches(CATALOG[0], ChallengeFilter(difficulties=frozenset({Difficulty.EASY})))
    assert not matches(CATALOG[0], ChallengeFilter(tags=frozenset({"strings"})))


def test_related_challenges_ranked_by_shared_tags():
    n_queens = CATALOG[2]
    assert slugs(related_challenges(n_queens, CATALOG)) == ["fibonacci", "hanoi"]

    fibonacci = CATALOG[0]
    assert slugs(related_challenges(fibonacci, CATALOG, limit=1)) == ["hanoi"]


def test_related_excludes_unrelated_and_self():
    anagram = CATALOG[4]
    assert slugs(related_challenges(anagram, CATALOG)) == ["two-sum"]
