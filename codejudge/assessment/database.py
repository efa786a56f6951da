import functools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from codejudge.assessment.errors import StorageUnavailable
from codejudge.assessment.models import CaseVerdict, Challenge, GradingKey, SubmissionResult

logger = logging.getLogger(__name__)


def _storage_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Surfaces driver failures as StorageUnavailable"""

    @functools.wraps(func)
    def inner(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except PyMongoError as exc:
            logger.error("Storage call %s failed: %s", func.__name__, exc)
            raise StorageUnavailable(str(exc)) from exc

    return inner


class AssessmentRepository:
    """Challenges, submission results and per-case verdicts in MongoDB"""

    def __init__(self, db: Database):
        self.db = db

    # ==================== INDEXES ====================

    @_storage_call
    def create_indexes(self):
        self.db.challenges.create_index("slug", unique=True)
        self.db.challenges.create_index([("difficulty", ASCENDING), ("tags", ASCENDING)])

        self.db.submission_results.create_index("submission_id", unique=True)
        self.db.submission_results.create_index("challenge_slug")

        self.db.case_verdicts.create_index(
            [
                ("submission_id", ASCENDING),
                ("challenge_slug", ASCENDING),
                ("language", ASCENDING),
                ("source_digest", ASCENDING),
                ("case_id", ASCENDING),
            ],
            unique=True,
        )
        logger.info("Assessment indexes created")

    # ==================== CHALLENGES ====================

    @_storage_call
    def get_challenge(self, slug: str) -> Optional[Challenge]:
        doc = self.db.challenges.find_one({"slug": slug}, {"_id": 0})
        return Challenge.from_document(doc) if doc else None

    @_storage_call
    def list_challenges(self) -> List[Challenge]:
        cursor = self.db.challenges.find({}, {"_id": 0}).sort("slug", ASCENDING)
        return [Challenge.from_document(doc) for doc in cursor]

    # ==================== SUBMISSION RESULTS ====================

    @_storage_call
    def get_submission_result(self, submission_id: str) -> Optional[SubmissionResult]:
        doc = self.db.submission_results.find_one({"submission_id": submission_id}, {"_id": 0})
        return SubmissionResult.from_document(doc) if doc else None

    @_storage_call
    def save_submission_result(self, result: SubmissionResult) -> SubmissionResult:
        """Insert-if-absent; returns whichever result was stored first"""
        try:
            self.db.submission_results.update_one(
                {"submission_id": result.submission_id},
                {"$setOnInsert": result.to_document()},
                upsert=True,
            )
        except DuplicateKeyError:
            # Concurrent upsert for the same submission won the race
            pass
        doc = self.db.submission_results.find_one({"submission_id": result.submission_id}, {"_id": 0})
        return SubmissionResult.from_document(doc)

    # ==================== CASE VERDICTS ====================

    @_storage_call
    def get_case_verdicts(self, key: GradingKey) -> Dict[str, CaseVerdict]:
        cursor = self.db.case_verdicts.find(
            key.to_document(),
            {"_id": 0},
        )
        return {doc["case_id"]: CaseVerdict.from_document(doc) for doc in cursor}

    @_storage_call
    def save_case_verdict(self, key: GradingKey, verdict: CaseVerdict) -> None:
        query = {**key.to_document(), "case_id": verdict.case_id}
        try:
            self.db.case_verdicts.update_one(
                query,
                {"$setOnInsert": {**verdict.to_document(), **query, "graded_at": datetime.now(timezone.utc)}},
                upsert=True,
            )
        except DuplicateKeyError:
            # Another worker stored this case first
            pass
