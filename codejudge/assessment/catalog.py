"""Challenge Catalog Filter"""

from typing import Iterable, List

from codejudge.assessment.models import Challenge, ChallengeFilter


def matches(challenge: Challenge, challenge_filter: ChallengeFilter) -> bool:
    """Every non-empty constraint must hold (logical AND)"""
    if challenge_filter.difficulties and challenge.difficulty not in challenge_filter.difficulties:
        return False
    if challenge_filter.languages and not (challenge.languages & challenge_filter.languages):
        return False
    if challenge_filter.tags and not (challenge.tags & challenge_filter.tags):
        return False
    if challenge_filter.search:
        needle = challenge_filter.search.casefold()
        if needle not in challenge.title.casefold() and needle not in challenge.description.casefold():
            return False
    return True


def filter_challenges(challenges: Iterable[Challenge], challenge_filter: ChallengeFilter) -> List[Challenge]:
    """Matching challenges ordered by slug, so repeated queries page identically"""
    return sorted(
        (c for c in challenges if matches(c, challenge_filter)),
        key=lambda c: c.slug,
    )


def related_challenges(challenge: Challenge, challenges: Iterable[Challenge], limit: int = 5) -> List[Challenge]:
    """Challenges sharing at least one tag, most shared tags first"""
    related = [
        c for c in challenges
        if c.slug != challenge.slug and c.tags & challenge.tags
    ]
    related.sort(key=lambda c: (-len(c.tags & challenge.tags), c.slug))
    return related[:max(0, limit)]
