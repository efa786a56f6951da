import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo import MongoClient

from codejudge.assessment import config
from codejudge.assessment.app import setup_assessment_routes, startup_assessment_system
from codejudge.assessment.database import AssessmentRepository
from codejudge.assessment.judge import JudgeDispatcher
from codejudge.assessment.service import AssessmentService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def build_service() -> AssessmentService:
    client = MongoClient(config.MONGO_URL)
    db = client[config.MONGO_DB_NAME]
    return AssessmentService(AssessmentRepository(db), JudgeDispatcher())


def create_app(service: Optional[AssessmentService] = None) -> FastAPI:
    app = FastAPI(title="CodeJudge Assessment Engine")
    app.state.assessment_service = service or build_service()

    @app.on_event("startup")
    def startup_event():
        startup_assessment_system(app)

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.assessment_service.dispatcher.close()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== ROUTER REGISTRATION ====================
    setup_assessment_routes(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
