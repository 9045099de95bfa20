"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from gradebook.api.v1.endpoints import academic, analytics, audit, exams, marks

api_router = APIRouter()

# Exams
api_router.include_router(
    exams.router,
    prefix="/exams",
    tags=["Exams"],
)

# Marks ledger
api_router.include_router(
    marks.router,
    prefix="/marks",
    tags=["Marks"],
)

# Analytics
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["Analytics"],
)

# Academic calendar
api_router.include_router(
    academic.router,
    prefix="/academic",
    tags=["Academic Calendar"],
)

# Audit Logs
api_router.include_router(
    audit.router,
    prefix="/audit-logs",
    tags=["Audit Logs"],
)
