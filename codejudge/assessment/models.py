from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

MAX_SOURCE_BYTES = 100 * 1024  # 100KB

# ==================== ENUMS ====================

class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    COMPILE_ERROR = "compile_error"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"
    SANDBOX_UNAVAILABLE = "sandbox_unavailable"

class FailureReason(str, Enum):
    WRONG_ANSWER = "wrong_answer"
    COMPILE_ERROR = "compile_error"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"
    INFRASTRUCTURE = "infrastructure"
    UNSUPPORTED_LANGUAGE = "unsupported_language"

class SubmissionStatus(str, Enum):
    ACCEPTED = "accepted"
    PARTIALLY_ACCEPTED = "partially_accepted"
    REJECTED = "rejected"
    ERRORED = "errored"

# Failures that mean the learner's code was never meaningfully evaluated
NON_EVALUATED_REASONS = {FailureReason.INFRASTRUCTURE, FailureReason.UNSUPPORTED_LANGUAGE}

# ==================== CHALLENGE MODELS ====================

@dataclass(frozen=True)
class TestCase:
    """One stdin / expected stdout pair"""
    __test__ = False

    case_id: str
    input: str
    expected_output: str
    hidden: bool = False

    @classmethod
    def from_document(cls, doc: dict, position: int) -> "TestCase":
        return cls(
            case_id=str(doc.get("case_id") or f"case-{position + 1}"),
            input=doc.get("input", ""),
            expected_output=doc.get("expected_output", ""),
            hidden=bool(doc.get("hidden", False)),
        )

    def to_document(self) -> dict:
        return {
            "case_id": self.case_id,
            "input": self.input,
            "expected_output": self.expected_output,
            "hidden": self.hidden,
        }


@dataclass(frozen=True)
class Challenge:
    """A coding problem graded against its test cases"""

    slug: str
    title: str
    difficulty: Difficulty
    languages: FrozenSet[str]
    tags: FrozenSet[str]
    description: str
    test_cases: Tuple[TestCase, ...]
    starter_code: str = ""
    hints: Tuple[str, ...] = ()
    time_limit: Optional[float] = None  # seconds
    memory_limit: Optional[int] = None  # MB

    def __post_init__(self):
        if not self.test_cases:
            raise ValueError(f"Challenge {self.slug} must have at least one test case")

    @classmethod
    def from_document(cls, doc: dict) -> "Challenge":
        return cls(
            slug=doc["slug"],
            title=doc["title"],
            difficulty=Difficulty(doc["difficulty"]),
            languages=frozenset(lang.lower() for lang in doc.get("languages", [])),
            tags=frozenset(doc.get("tags", [])),
            description=doc.get("description", ""),
            test_cases=tuple(
                TestCase.from_document(tc, idx)
                for idx, tc in enumerate(doc.get("test_cases", []))
            ),
            starter_code=doc.get("starter_code", ""),
            hints=tuple(doc.get("hints", [])),
            time_limit=doc.get("time_limit"),
            memory_limit=doc.get("memory_limit"),
        )

    def to_document(self) -> dict:
        return {
            "slug": self.slug,
            "title": self.title,
            "difficulty": self.difficulty.value,
            "languages": sorted(self.languages),
            "tags": sorted(self.tags),
            "description": self.description,
            "test_cases": [tc.to_document() for tc in self.test_cases],
            "starter_code": self.starter_code,
            "hints": list(self.hints),
            "time_limit": self.time_limit,
            "memory_limit": self.memory_limit,
        }

    def public_view(self, include_hidden: bool = False) -> dict:
        """Challenge as shown to a caller; learners never see hidden test cases"""
        doc = self.to_document()
        doc["test_cases"] = [
            tc.to_document()
            for tc in self.test_cases
            if include_hidden or not tc.hidden
        ]
        return doc

    def summary(self) -> dict:
        """Listing entry without test cases"""
        doc = self.to_document()
        doc.pop("test_cases")
        doc["test_case_count"] = len(self.test_cases)
        return doc


@dataclass(frozen=True)
class ChallengeFilter:
    """Catalog query; every empty field is unconstrained"""

    difficulties: FrozenSet[Difficulty] = frozenset()
    languages: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()
    search: Optional[str] = None

    @classmethod
    def from_query(
        cls,
        difficulty: Optional[str] = None,
        language: Optional[str] = None,
        tags: Optional[str] = None,
        search: Optional[str] = None,
    ) -> "ChallengeFilter":
        """Build a filter from comma separated query parameters

        Raises:
            ValueError: unknown difficulty
        """
        def split(value: Optional[str]) -> List[str]:
            if not value:
                return []
            return [part.strip() for part in value.split(",") if part.strip()]

        return cls(
            difficulties=frozenset(Difficulty(d.lower()) for d in split(difficulty)),
            languages=frozenset(lang.lower() for lang in split(language)),
            tags=frozenset(split(tags)),
            search=search.strip() if search and search.strip() else None,
        )

# ==================== EXECUTION MODELS ====================

@dataclass(frozen=True)
class ExecutionRequest:
    language: str
    sandbox_language: str
    version_index: str
    source: str
    stdin: str
    time_limit: float  # seconds
    memory_limit: int  # MB


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    stderr: str
    status: ExecutionStatus
    duration: float  # wall clock seconds
    attempts: int = 0
    cpu_time: Optional[float] = None
    memory: Optional[float] = None  # KB, as reported by the sandbox

    def to_dict(self) -> dict:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "status": self.status.value,
            "duration": self.duration,
            "attempts": self.attempts,
            "cpu_time": self.cpu_time,
            "memory": self.memory,
        }

# ==================== GRADING MODELS ====================

@dataclass(frozen=True)
class CaseVerdict:
    case_id: str
    passed: bool
    output: str = ""
    reason: Optional[FailureReason] = None
    hidden: bool = False

    @property
    def is_terminal(self) -> bool:
        """Infrastructure failures can be regraded; everything else is final"""
        return self.reason != FailureReason.INFRASTRUCTURE

    @classmethod
    def from_document(cls, doc: dict) -> "CaseVerdict":
        reason = doc.get("reason")
        return cls(
            case_id=doc["case_id"],
            passed=bool(doc["passed"]),
            output=doc.get("output", ""),
            reason=FailureReason(reason) if reason else None,
            hidden=bool(doc.get("hidden", False)),
        )

    def to_document(self) -> dict:
        return {
            "case_id": self.case_id,
            "passed": self.passed,
            "output": self.output,
            "reason": self.reason.value if self.reason else None,
            "hidden": self.hidden,
        }


@dataclass(frozen=True)
class GradingKey:
    """Stored case verdicts are reusable only for this exact attempt"""

    submission_id: str
    challenge_slug: str
    language: str
    source_digest: str

    def to_document(self) -> dict:
        return {
            "submission_id": self.submission_id,
            "challenge_slug": self.challenge_slug,
            "language": self.language,
            "source_digest": self.source_digest,
        }


@dataclass(frozen=True)
class SubmissionResult:
    submission_id: str
    challenge_slug: str
    language: str
    verdicts: Tuple[CaseVerdict, ...]
    score: float
    status: SubmissionStatus
    source_digest: str = ""
    error: Optional[str] = None
    graded_at: Optional[datetime] = None

    @property
    def passed_count(self) -> int:
        return sum(1 for v in self.verdicts if v.passed)

    @property
    def is_authoritative(self) -> bool:
        """Only results without pending infrastructure failures are final"""
        return all(v.is_terminal for v in self.verdicts)

    @classmethod
    def from_document(cls, doc: dict) -> "SubmissionResult":
        return cls(
            submission_id=doc["submission_id"],
            challenge_slug=doc["challenge_slug"],
            language=doc["language"],
            verdicts=tuple(CaseVerdict.from_document(v) for v in doc.get("verdicts", [])),
            score=float(doc["score"]),
            status=SubmissionStatus(doc["status"]),
            source_digest=doc.get("source_digest", ""),
            error=doc.get("error"),
            graded_at=doc.get("graded_at"),
        )

    def to_document(self) -> dict:
        return {
            "submission_id": self.submission_id,
            "challenge_slug": self.challenge_slug,
            "language": self.language,
            "verdicts": [v.to_document() for v in self.verdicts],
            "score": self.score,
            "status": self.status.value,
            "source_digest": self.source_digest,
            "error": self.error,
            "graded_at": self.graded_at,
        }

    def to_response(self, include_hidden: bool = False) -> dict:
        """Result for the caller; output of hidden cases is redacted for learners"""
        doc = self.to_document()
        doc.pop("source_digest")
        doc["passed"] = self.passed_count
        doc["total"] = len(self.verdicts)
        if not include_hidden:
            for verdict in doc["verdicts"]:
                if verdict["hidden"]:
                    verdict["output"] = ""
        return doc

# ==================== REQUEST MODELS ====================

class SubmissionCreate(BaseModel):
    submission_id: str = Field(..., min_length=1, max_length=128)
    challenge_slug: str
    language: str
    source: str

    @field_validator("language")
    @classmethod
    def validate_language(cls, v):
        return v.strip().lower()

    @field_validator("source")
    @classmethod
    def validate_source(cls, v):
        if len(v.encode("utf-8")) > MAX_SOURCE_BYTES:
            raise ValueError("Source code too large (max 100KB)")
        return v


class RunCodeRequest(BaseModel):
    language: str
    source: str
    stdin: str = ""

    @field_validator("language")
    @classmethod
    def validate_language(cls, v):
        return v.strip().lower()

    @field_validator("source")
    @classmethod
    def validate_source(cls, v):
        if not v.strip():
            raise ValueError("Source code is required")
        if len(v.encode("utf-8")) > MAX_SOURCE_BYTES:
            raise ValueError("Source code too large (max 100KB)")
        return v
