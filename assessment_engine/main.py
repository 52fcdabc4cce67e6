import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from assessment_engine.core.errors import (
    AssessmentEngineError,
    AssignmentAlreadySubmitted,
    AssignmentStateError,
    ConcurrencyConflict,
    EnrollmentMismatch,
    InvalidAnswer,
    InvalidScore,
    PolicyViolation,
)
from assessment_engine.core.logging_middleware import LoggingMiddleware
from assessment_engine.db.init_db import init_db
from assessment_engine.routers.grading import router as grading_router
from assessment_engine.routers.student_assessments import router as student_assessments_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Assessment Engine")

# Middleware
app.add_middleware(LoggingMiddleware)

ERROR_STATUS = {
    PolicyViolation: status.HTTP_403_FORBIDDEN,
    EnrollmentMismatch: status.HTTP_403_FORBIDDEN,
    AssignmentAlreadySubmitted: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    AssignmentStateError: 422,
    InvalidScore: 422,
    InvalidAnswer: 422,
}


@app.exception_handler(AssessmentEngineError)
async def assessment_engine_error_handler(request: Request, exc: AssessmentEngineError):
    status_code = next(
        (code for exc_type, code in ERROR_STATUS.items() if isinstance(exc, exc_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    detail = {"message": str(exc)}
    if isinstance(exc, PolicyViolation):
        detail["reason"] = exc.reason.value
    return JSONResponse(status_code=status_code, content={"detail": detail})


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(student_assessments_router, tags=["student-assessments"])
app.include_router(grading_router)
