from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from codejudge.assessment.auth_utils import is_admin, optional_token, verify_token
from codejudge.assessment.dependencies import get_service
from codejudge.assessment.errors import ChallengeNotFound, StorageUnavailable, UnsupportedLanguage
from codejudge.assessment.models import ChallengeFilter, RunCodeRequest
from codejudge.assessment.service import AssessmentService

router = APIRouter(tags=["Challenges"])


@router.get("/challenges")
def list_challenges_endpoint(
    difficulty: Optional[str] = None,
    language: Optional[str] = None,
    tags: Optional[str] = None,
    search: Optional[str] = None,
    service: AssessmentService = Depends(get_service),
):
    """List challenges; comma separated values within a parameter are OR-ed"""
    try:
        challenge_filter = ChallengeFilter.from_query(difficulty, language, tags, search)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter: {e}")

    try:
        challenges = service.list_challenges(challenge_filter)
    except StorageUnavailable:
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {
        "success": True,
        "data": [c.summary() for c in challenges],
        "count": len(challenges),
    }


@router.get("/challenges/{slug}")
def get_challenge_endpoint(
    slug: str,
    service: AssessmentService = Depends(get_service),
    principal: Optional[dict] = Depends(optional_token),
):
    try:
        challenge = service.get_challenge_by_slug(slug)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except StorageUnavailable:
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {"success": True, "data": challenge.public_view(include_hidden=is_admin(principal))}


@router.get("/challenges/{slug}/related")
def related_challenges_endpoint(
    slug: str,
    limit: int = Query(5, ge=1, le=20),
    service: AssessmentService = Depends(get_service),
):
    try:
        related = service.related_challenges(slug, limit)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except StorageUnavailable:
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {"success": True, "data": [c.summary() for c in related]}


@router.post("/run-code")
def run_code_endpoint(
    payload: RunCodeRequest,
    service: AssessmentService = Depends(get_service),
    principal: dict = Depends(verify_token),
):
    """Run code against custom stdin; nothing is graded or stored"""
    try:
        result = service.run_code(payload.language, payload.source, payload.stdin)
    except UnsupportedLanguage as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "data": result.to_dict()}
