import json
import threading
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from codejudge.assessment.judge import JudgeDispatcher
from codejudge.assessment.limiter import ConcurrencyLimiter
from codejudge.assessment.models import (
    CaseVerdict,
    Challenge,
    Difficulty,
    GradingKey,
    SubmissionResult,
    TestCase,
)

API_URL = "https://sandbox.test/v1/execute"


class FakeRepository:
    """In-memory stand-in for AssessmentRepository"""

    def __init__(self, challenges: Optional[List[Challenge]] = None):
        self.challenges: Dict[str, Challenge] = {c.slug: c for c in challenges or []}
        self.results: Dict[str, SubmissionResult] = {}
        self.verdicts: Dict[GradingKey, Dict[str, CaseVerdict]] = {}
        self.indexes_created = False
        self._lock = threading.Lock()

    def create_indexes(self):
        self.indexes_created = True

    def get_challenge(self, slug):
        return self.challenges.get(slug)

    def list_challenges(self):
        return sorted(self.challenges.values(), key=lambda c: c.slug)

    def get_submission_result(self, submission_id):
        return self.results.get(submission_id)

    def save_submission_result(self, result):
        with self._lock:
            return self.results.setdefault(result.submission_id, result)

    def get_case_verdicts(self, key):
        return dict(self.verdicts.get(key, {}))

    def save_case_verdict(self, key, verdict):
        with self._lock:
            self.verdicts.setdefault(key, {}).setdefault(verdict.case_id, verdict)


def make_challenge(
    slug: str = "sum-two",
    title: str = "Sum Two Numbers",
    difficulty: Difficulty = Difficulty.EASY,
    languages=("python", "javascript"),
    tags=("math",),
    description: str = "Read two integers and print their sum",
    cases=None,
    **kwargs,
) -> Challenge:
    if cases is None:
        cases = [("1 2", "3"), ("2 2", "4"), ("10 5", "15"), ("0 0", "0")]
    return Challenge(
        slug=slug,
        title=title,
        difficulty=difficulty,
        languages=frozenset(languages),
        tags=frozenset(tags),
        description=description,
        test_cases=tuple(
            TestCase(case_id=f"case-{idx + 1}", input=stdin, expected_output=expected)
            for idx, (stdin, expected) in enumerate(cases)
        ),
        **kwargs,
    )


def sandbox_body(output: str = "", **overrides) -> dict:
    body = {
        "output": output,
        "statusCode": 200,
        "memory": "7680",
        "cpuTime": "0.02",
        "isCompiled": True,
        "isExecutionSuccess": True,
    }
    body.update(overrides)
    return body


class SandboxStub:
    """MockTransport handler that records every request it serves"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)


def make_dispatcher(handler, limiter=None, **kwargs) -> Tuple[JudgeDispatcher, SandboxStub]:
    stub = handler if isinstance(handler, SandboxStub) else SandboxStub(handler)
    options = dict(
        api_url=API_URL,
        client_id="client-id",
        client_secret="client-secret",
        max_attempts=3,
        backoff_base=0.01,
        backoff_cap=0.05,
        sleep=lambda _: None,
    )
    options.update(kwargs)
    dispatcher = JudgeDispatcher(
        http_client=httpx.Client(transport=httpx.MockTransport(stub)),
        limiter=limiter or ConcurrencyLimiter(4),
        **options,
    )
    return dispatcher, stub


def echo_sum(request: httpx.Request) -> httpx.Response:
    """Sandbox that behaves like a correct sum program"""
    stdin = json.loads(request.content)["stdin"]
    total = sum(int(part) for part in stdin.split())
    return httpx.Response(200, json=sandbox_body(f"{total}\n"))


@pytest.fixture
def challenge():
    return make_challenge()


@pytest.fixture
def repository(challenge):
    return FakeRepository([challenge])
