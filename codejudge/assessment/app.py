"""
Assessment System - Route and storage setup
Challenges catalog, sandboxed execution and submission grading
"""

import logging

from fastapi import FastAPI

from codejudge.assessment.challenge_router import router as challenge_router
from codejudge.assessment.submission_router import router as submission_router

logger = logging.getLogger(__name__)

# ==================== ROUTER SETUP ====================

def setup_assessment_routes(app: FastAPI):
    """Register all assessment routers"""

    app.include_router(challenge_router, prefix="/assessment")
    app.include_router(submission_router, prefix="/assessment")

    logger.info("Assessment routes registered")

# ==================== STARTUP ====================

def startup_assessment_system(app: FastAPI):
    """Initialize assessment storage on app startup"""
    app.state.assessment_service.repository.create_indexes()
    logger.info("Assessment system initialized")
