"""
Submission Aggregator
Grades one submission against every test case of a challenge

Process:
    1. Reject languages the challenge does not support (no remote calls)
    2. Return the stored authoritative result if this submission was graded
    3. Reuse stored terminal case verdicts, dispatch the rest on a bounded pool
    4. Fold verdicts (in test-case order) into score and overall status
"""

import concurrent.futures as pool
import hashlib
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from codejudge.assessment import config
from codejudge.assessment.errors import SubmissionConflict
from codejudge.assessment.judge import JudgeDispatcher
from codejudge.assessment.models import (
    NON_EVALUATED_REASONS,
    CaseVerdict,
    Challenge,
    ExecutionResult,
    ExecutionStatus,
    FailureReason,
    GradingKey,
    SubmissionResult,
    SubmissionStatus,
    TestCase,
)
from codejudge.assessment.validator import validate

logger = logging.getLogger(__name__)

_FAILURE_BY_STATUS = {
    ExecutionStatus.COMPILE_ERROR: FailureReason.COMPILE_ERROR,
    ExecutionStatus.RUNTIME_ERROR: FailureReason.RUNTIME_ERROR,
    ExecutionStatus.TIMEOUT: FailureReason.TIMEOUT,
    ExecutionStatus.SANDBOX_UNAVAILABLE: FailureReason.INFRASTRUCTURE,
}


def source_digest(source: str) -> str:
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def case_verdict(test_case: TestCase, result: ExecutionResult) -> CaseVerdict:
    """Turns one execution result into a pass/fail verdict"""
    if result.status == ExecutionStatus.SUCCESS:
        passed = validate(result.stdout, test_case.expected_output)
        return CaseVerdict(
            case_id=test_case.case_id,
            passed=passed,
            output=result.stdout,
            reason=None if passed else FailureReason.WRONG_ANSWER,
            hidden=test_case.hidden,
        )

    # Program-level or infrastructure failure: output is not compared
    return CaseVerdict(
        case_id=test_case.case_id,
        passed=False,
        output=result.stderr or result.stdout,
        reason=_FAILURE_BY_STATUS[result.status],
        hidden=test_case.hidden,
    )


def infrastructure_verdict(test_case: TestCase, message: str) -> CaseVerdict:
    return CaseVerdict(
        case_id=test_case.case_id,
        passed=False,
        output=message,
        reason=FailureReason.INFRASTRUCTURE,
        hidden=test_case.hidden,
    )


def calculate_score(verdicts: Sequence[CaseVerdict]) -> float:
    if not verdicts:
        return 0.0
    return sum(1 for v in verdicts if v.passed) / len(verdicts)


def aggregate_status(verdicts: Sequence[CaseVerdict]) -> SubmissionStatus:
    """
    accepted            all cases pass
    partially_accepted  some but not all pass
    errored             nothing passed and the code was never really evaluated
    rejected            nothing passed otherwise
    """
    if not verdicts:
        return SubmissionStatus.ERRORED

    passed = sum(1 for v in verdicts if v.passed)
    if passed == len(verdicts):
        return SubmissionStatus.ACCEPTED
    if passed > 0:
        return SubmissionStatus.PARTIALLY_ACCEPTED
    if all(v.reason in NON_EVALUATED_REASONS for v in verdicts):
        return SubmissionStatus.ERRORED
    return SubmissionStatus.REJECTED


class SubmissionGrader:
    """Grades submissions through the dispatcher, idempotent per submission id"""

    def __init__(
        self,
        dispatcher: JudgeDispatcher,
        repository,
        max_workers: int = config.GRADER_MAX_WORKERS,
        deadline_seconds: float = config.GRADING_DEADLINE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dispatcher = dispatcher
        self.repository = repository
        self.max_workers = max(1, max_workers)
        self.deadline_seconds = deadline_seconds
        self._clock = clock

    def grade(
        self,
        submission_id: str,
        challenge: Challenge,
        source: str,
        language: str,
        deadline: Optional[float] = None,
    ) -> SubmissionResult:
        """Grades a submission against the full test-case set

        Args:
            submission_id (str): idempotency key of the attempt
            challenge (Challenge): challenge with test cases
            source (str): learner's code
            language (str): platform language identifier
            deadline (float): time.monotonic() instant for the whole run

        Returns:
            SubmissionResult: always complete, verdicts in test-case order

        Raises:
            SubmissionConflict: submission id reused for other code or challenge
            StorageUnavailable: repository failure
        """
        language = language.lower()
        digest = source_digest(source)

        if language not in challenge.languages:
            logger.info(
                "Submission %s: challenge %s does not support %s",
                submission_id, challenge.slug, language,
            )
            return SubmissionResult(
                submission_id=submission_id,
                challenge_slug=challenge.slug,
                language=language,
                verdicts=(),
                score=0.0,
                status=SubmissionStatus.ERRORED,
                source_digest=digest,
                error=f"Challenge {challenge.slug} does not support language {language}",
                graded_at=datetime.now(timezone.utc),
            )

        existing = self.repository.get_submission_result(submission_id)
        if existing is not None:
            self._check_same_submission(existing, challenge, language, digest)
            logger.info("Submission %s already graded, returning stored result", submission_id)
            return existing

        if not self.dispatcher.supports(language):
            logger.warning("Submission %s: no sandbox mapping for %s", submission_id, language)
            verdicts = [
                CaseVerdict(
                    case_id=tc.case_id,
                    passed=False,
                    output=f"Unsupported language: {language}",
                    reason=FailureReason.UNSUPPORTED_LANGUAGE,
                    hidden=tc.hidden,
                )
                for tc in challenge.test_cases
            ]
            return self._finish(submission_id, challenge, language, digest, verdicts)

        if deadline is None:
            deadline = self._clock() + self.deadline_seconds

        key = GradingKey(submission_id, challenge.slug, language, digest)
        case_ids = {tc.case_id for tc in challenge.test_cases}
        verdicts_by_case: Dict[str, CaseVerdict] = {
            case_id: verdict
            for case_id, verdict in self.repository.get_case_verdicts(key).items()
            if case_id in case_ids and verdict.is_terminal
        }
        if verdicts_by_case:
            logger.info(
                "Submission %s: reusing %d stored verdict(s)", submission_id, len(verdicts_by_case)
            )

        pending = [tc for tc in challenge.test_cases if tc.case_id not in verdicts_by_case]
        logger.info(
            "Grading submission %s for %s (%d of %d case(s) to run, language=%s)",
            submission_id, challenge.slug, len(pending), len(challenge.test_cases), language,
        )
        if pending:
            verdicts_by_case.update(
                self._run_cases(key, challenge, source, language, pending, deadline)
            )

        ordered = [verdicts_by_case[tc.case_id] for tc in challenge.test_cases]
        return self._finish(submission_id, challenge, language, digest, ordered)

    def _check_same_submission(
        self,
        existing: SubmissionResult,
        challenge: Challenge,
        language: str,
        digest: str,
    ):
        if (
            existing.challenge_slug != challenge.slug
            or existing.language != language
            or existing.source_digest != digest
        ):
            raise SubmissionConflict(existing.submission_id)

    def _grade_case(
        self,
        challenge: Challenge,
        test_case: TestCase,
        source: str,
        language: str,
        deadline: float,
    ) -> CaseVerdict:
        request = self.dispatcher.build_request(
            language,
            source,
            stdin=test_case.input,
            time_limit=challenge.time_limit,
            memory_limit=challenge.memory_limit,
        )
        result = self.dispatcher.execute(request, deadline)
        return case_verdict(test_case, result)

    def _run_cases(
        self,
        key: GradingKey,
        challenge: Challenge,
        source: str,
        language: str,
        pending: List[TestCase],
        deadline: float,
    ) -> Dict[str, CaseVerdict]:
        submission_id = key.submission_id
        results: Dict[str, CaseVerdict] = {}

        executor = pool.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(pending)),
            thread_name_prefix="grader",
        )
        try:
            futures = {
                executor.submit(self._grade_case, challenge, tc, source, language, deadline): tc
                for tc in pending
            }
            try:
                for future in pool.as_completed(futures, timeout=max(0.0, deadline - self._clock())):
                    test_case = futures[future]
                    try:
                        verdict = future.result()
                    except Exception:  # pylint: disable=W0718
                        logger.exception(
                            "Submission %s: case %s crashed", submission_id, test_case.case_id
                        )
                        verdict = infrastructure_verdict(test_case, "Internal grading error")

                    results[test_case.case_id] = verdict
                    if verdict.is_terminal:
                        self.repository.save_case_verdict(key, verdict)
            except pool.TimeoutError:
                logger.warning(
                    "Submission %s: grading deadline reached with %d case(s) pending",
                    submission_id, len(pending) - len(results),
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for test_case in pending:
            if test_case.case_id not in results:
                results[test_case.case_id] = infrastructure_verdict(
                    test_case, "Grading deadline exceeded"
                )
        return results

    def _finish(
        self,
        submission_id: str,
        challenge: Challenge,
        language: str,
        digest: str,
        verdicts: List[CaseVerdict],
    ) -> SubmissionResult:
        result = SubmissionResult(
            submission_id=submission_id,
            challenge_slug=challenge.slug,
            language=language,
            verdicts=tuple(verdicts),
            score=calculate_score(verdicts),
            status=aggregate_status(verdicts),
            source_digest=digest,
            graded_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Submission %s graded: %s (%d/%d)",
            submission_id, result.status.value, result.passed_count, len(verdicts),
        )

        if not result.is_authoritative:
            # Infrastructure failures stay regradable
            return result

        stored = self.repository.save_submission_result(result)
        self._check_same_submission(stored, challenge, language, digest)
        return stored
