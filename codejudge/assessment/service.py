"""
Assessment Service
API surface used by the route handlers: catalog queries, grading and ad-hoc runs.
Failures are raised as AssessmentError subclasses; routers map them to responses.
"""

import logging
from typing import List, Optional

from codejudge.assessment import catalog
from codejudge.assessment.errors import ChallengeNotFound
from codejudge.assessment.grader import SubmissionGrader
from codejudge.assessment.judge import JudgeDispatcher
from codejudge.assessment.models import Challenge, ChallengeFilter, ExecutionResult, SubmissionResult

logger = logging.getLogger(__name__)


class AssessmentService:

    def __init__(self, repository, dispatcher: JudgeDispatcher, grader: Optional[SubmissionGrader] = None):
        self.repository = repository
        self.dispatcher = dispatcher
        self.grader = grader or SubmissionGrader(dispatcher, repository)

    def list_challenges(self, challenge_filter: Optional[ChallengeFilter] = None) -> List[Challenge]:
        return catalog.filter_challenges(
            self.repository.list_challenges(),
            challenge_filter or ChallengeFilter(),
        )

    def get_challenge_by_slug(self, slug: str) -> Challenge:
        challenge = self.repository.get_challenge(slug)
        if challenge is None:
            raise ChallengeNotFound(slug)
        return challenge

    def related_challenges(self, slug: str, limit: int = 5) -> List[Challenge]:
        challenge = self.get_challenge_by_slug(slug)
        return catalog.related_challenges(challenge, self.repository.list_challenges(), limit)

    def grade_submission(self, submission_id: str, challenge_slug: str, language: str, source: str) -> SubmissionResult:
        challenge = self.get_challenge_by_slug(challenge_slug)
        return self.grader.grade(submission_id, challenge, source, language)

    def run_code(self, language: str, source: str, stdin: str = "") -> ExecutionResult:
        """Runs code once against custom input, without grading

        Raises:
            UnsupportedLanguage: before any remote call
        """
        request = self.dispatcher.build_request(language, source, stdin)
        result = self.dispatcher.execute(request)
        logger.info("Ad-hoc run (%s) finished with %s", request.language, result.status.value)
        return result
