# codejudge/assessment/dependencies.py

from fastapi import Request

from codejudge.assessment.service import AssessmentService


def get_service(request: Request) -> AssessmentService:
    """AssessmentService built at startup by codejudge.main"""
    return request.app.state.assessment_service
