"""
PeopleOS - Main Application

FastAPI backend with:
- Relational DB (SQLAlchemy) for jobs, candidates, employees and workflows
- MongoDB for form answers, resumes, AI analyses and event deliveries
- DeepSeek AI for candidate analysis
- JWT authentication with role-based access

Run: uvicorn peopleos.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from peopleos import __version__
from peopleos.api import api_router
from peopleos.core.config import get_settings
from peopleos.db.mongodb import init_mongo_indexes, test_mongo_connection
from peopleos.db.postgres import get_db_session, init_db, test_postgres_connection
from peopleos.services import offboarding_service, onboarding_service

settings = get_settings()
logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def seed_defaults() -> None:
    """Default onboarding and offboarding task templates on an empty database."""
    with get_db_session() as db:
        onboarding_service.ensure_default_templates(db)
        offboarding_service.ensure_default_templates(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    seed_defaults()
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except Exception as e:
        logger.warning(f"MongoDB index initialization failed: {e}")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="""
    Applicant tracking, onboarding and offboarding for a people team.

    ## Features
    - **Hiring**: versioned hiring flows, jobs, candidates, rubrics, interest forms, assessments
    - **People**: employees, offer letters with e-signature, onboarding and offboarding workflows
    - **Integrations**: Google Workspace, Slack and webhook provisioning, outbound events
    - **Analytics**: monthly, quarterly and weekly hiring metrics

    ## Databases
    - Relational: structured records and workflows
    - MongoDB: form answers, resume text, AI analyses, delivery log
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": settings.app_name, "version": __version__}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    postgres_ok = test_postgres_connection()
    mongo_ok = test_mongo_connection()
    return {
        "status": "healthy" if postgres_ok else "degraded",
        "postgres": "connected" if postgres_ok else "disconnected",
        "mongodb": "connected" if mongo_ok else "disconnected",
    }
