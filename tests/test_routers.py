from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from codejudge.assessment import config
from codejudge.assessment.errors import StorageUnavailable
from codejudge.assessment.models import TestCase
from codejudge.assessment.service import AssessmentService
from codejudge.main import create_app

from conftest import FakeRepository, echo_sum, make_challenge, make_dispatcher, sandbox_body

SECRET = "test-secret"
SOURCE = "a, b = map(int, input().split())\nprint(a + b)"


def token(role="student", sub="user-1"):
    return {"Authorization": "Bearer " + jwt.encode({"sub": sub, "role": role}, SECRET, algorithm="HS256")}


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET_KEY", SECRET)


@pytest.fixture
def repository():
    # One visible and one hidden case on the graded challenge
    sum_two = replace(
        make_challenge(),
        test_cases=(
            TestCase("case-1", "1 2", "3"),
            TestCase("case-2", "2 2", "4", hidden=True),
        ),
    )
    hidden_sum = make_challenge(slug="hidden-sum", title="Hidden Sum", cases=[("1 1", "2")])
    return FakeRepository([sum_two, hidden_sum])


@pytest.fixture
def client(repository):
    dispatcher, _ = make_dispatcher(echo_sum)
    return TestClient(create_app(service=AssessmentService(repository, dispatcher)))


def test_list_challenges(client):
    response = client.get("/assessment/challenges")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [c["slug"] for c in body["data"]] == ["hidden-sum", "sum-two"]
    assert "test_cases" not in body["data"][0]
    assert body["data"][1]["test_case_count"] == 2


def test_list_challenges_with_filter(client):
    response = client.get("/assessment/challenges", params={"difficulty": "hard"})
    assert response.json()["data"] == []


def test_bad_difficulty_is_400(client):
    response = client.get("/assessment/challenges", params={"difficulty": "legendary"})
    assert response.status_code == 400


def test_challenge_detail_hides_hidden_cases_for_learners(client):
    data = client.get("/assessment/challenges/sum-two", headers=token()).json()["data"]
    assert [tc["case_id"] for tc in data["test_cases"]] == ["case-1"]

    data = client.get("/assessment/challenges/sum-two", headers=token("admin")).json()["data"]
    assert [tc["case_id"] for tc in data["test_cases"]] == ["case-1", "case-2"]


def test_unknown_challenge_is_404(client):
    assert client.get("/assessment/challenges/missing").status_code == 404


def test_invalid_token_is_401(client):
    response = client.get(
        "/assessment/challenges/sum-two", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


def test_related_challenges(client):
    response = client.get("/assessment/challenges/sum-two/related")
    assert [c["slug"] for c in response.json()["data"]] == ["hidden-sum"]


def test_submission_requires_auth(client):
    response = client.post("/assessment/submissions", json={
        "submission_id": "sub-1", "challenge_slug": "sum-two", "language": "python", "source": SOURCE,
    })
    assert response.status_code == 401


def test_submission_graded_and_hidden_output_redacted(client):
    response = client.post("/assessment/submissions", headers=token(), json={
        "submission_id": "sub-1", "challenge_slug": "sum-two", "language": "Python", "source": SOURCE,
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "accepted"
    assert data["score"] == 1.0
    assert data["passed"] == data["total"] == 2
    assert data["verdicts"][0]["output"] == "3\n"
    assert data["verdicts"][1]["output"] == ""
    assert "source_digest" not in data


def test_submission_conflict_is_409(client):
    payload = {"submission_id": "sub-1", "challenge_slug": "sum-two", "language": "python", "source": SOURCE}
    assert client.post("/assessment/submissions", headers=token(), json=payload).status_code == 200

    payload["source"] = SOURCE + "\n"
    assert client.post("/assessment/submissions", headers=token(), json=payload).status_code == 409


def test_submission_for_unknown_challenge_is_404(client):
    response = client.post("/assessment/submissions", headers=token(), json={
        "submission_id": "sub-1", "challenge_slug": "missing", "language": "python", "source": SOURCE,
    })
    assert response.status_code == 404


def test_submission_in_unsupported_language_is_errored(client):
    response = client.post("/assessment/submissions", headers=token(), json={
        "submission_id": "sub-1", "challenge_slug": "sum-two", "language": "java", "source": SOURCE,
    })
    data = response.json()["data"]
    assert data["status"] == "errored"
    assert data["verdicts"] == []


def test_run_code(client):
    response = client.post("/assessment/run-code", headers=token(), json={
        "language": "python", "source": SOURCE, "stdin": "4 5",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "success"
    assert data["stdout"] == "9\n"


def test_run_code_unsupported_language_is_400(client):
    response = client.post("/assessment/run-code", headers=token(), json={
        "language": "cobol", "source": "DISPLAY 'HI'.",
    })
    assert response.status_code == 400


def test_run_code_rejects_empty_source(client):
    response = client.post("/assessment/run-code", headers=token(), json={
        "language": "python", "source": "   ",
    })
    assert response.status_code == 422


def test_storage_failure_is_503(repository):
    def broken():
        raise StorageUnavailable("down")

    repository.list_challenges = broken
    dispatcher, _ = make_dispatcher(lambda request: httpx.Response(200, json=sandbox_body()))
    client = TestClient(create_app(service=AssessmentService(repository, dispatcher)))
    assert client.get("/assessment/challenges").status_code == 503


def test_startup_creates_indexes(repository):
    dispatcher, _ = make_dispatcher(echo_sum)
    app = create_app(service=AssessmentService(repository, dispatcher))
    with TestClient(app):
        assert repository.indexes_created


def test_tokens_rejected_without_configured_secret(client, monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET_KEY", None)
    forged = {"Authorization": "Bearer " + jwt.encode({"sub": "mallory", "role": "admin"}, "", algorithm="HS256")}

    response = client.get("/assessment/challenges/sum-two", headers=forged)
    assert response.status_code == 401

    response = client.post("/assessment/run-code", headers=forged, json={"language": "python", "source": SOURCE})
    assert response.status_code == 401
