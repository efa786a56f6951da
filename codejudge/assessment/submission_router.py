import logging

from fastapi import APIRouter, Depends, HTTPException

from codejudge.assessment.auth_utils import is_admin, verify_token
from codejudge.assessment.dependencies import get_service
from codejudge.assessment.errors import ChallengeNotFound, StorageUnavailable, SubmissionConflict
from codejudge.assessment.models import SubmissionCreate
from codejudge.assessment.service import AssessmentService

router = APIRouter(tags=["Submissions"])

logger = logging.getLogger(__name__)


@router.post("/submissions")
def submit_solution(
    submission: SubmissionCreate,
    service: AssessmentService = Depends(get_service),
    principal: dict = Depends(verify_token),
):
    """
    Grade a solution against every test case of the challenge.
    Re-posting the same submission_id returns the stored result without
    running the code again.
    """
    logger.info(
        "Submission %s from %s for %s",
        submission.submission_id, principal.get("sub"), submission.challenge_slug,
    )
    try:
        result = service.grade_submission(
            submission.submission_id,
            submission.challenge_slug,
            submission.language,
            submission.source,
        )
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except SubmissionConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageUnavailable:
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {"success": True, "data": result.to_response(include_hidden=is_admin(principal))}
