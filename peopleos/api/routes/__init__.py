"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from peopleos.api.routes.auth_routes import router as auth_router
from peopleos.api.routes.hiring_flow_routes import router as hiring_flow_router
from peopleos.api.routes.job_routes import router as job_router
from peopleos.api.routes.candidate_routes import router as candidate_router
from peopleos.api.routes.stage_email_routes import router as stage_email_router
from peopleos.api.routes.rubric_routes import router as rubric_router
from peopleos.api.routes.interest_form_routes import router as interest_form_router
from peopleos.api.routes.assessment_routes import router as assessment_router
from peopleos.api.routes.employee_routes import router as employee_router
from peopleos.api.routes.offer_routes import router as offer_router
from peopleos.api.routes.onboarding_routes import router as onboarding_router
from peopleos.api.routes.offboarding_routes import router as offboarding_router
from peopleos.api.routes.integration_routes import router as integration_router
from peopleos.api.routes.audit_routes import router as audit_router
from peopleos.api.routes.analytics_routes import router as analytics_router

# Main API router
api_router = APIRouter()

# Hiring
api_router.include_router(auth_router)
api_router.include_router(hiring_flow_router)
api_router.include_router(job_router)
api_router.include_router(candidate_router)
api_router.include_router(stage_email_router)
api_router.include_router(rubric_router)
api_router.include_router(interest_form_router)
api_router.include_router(assessment_router)

# People
api_router.include_router(employee_router)
api_router.include_router(offer_router)
api_router.include_router(onboarding_router)
api_router.include_router(offboarding_router)

# Platform
api_router.include_router(integration_router)
api_router.include_router(audit_router)
api_router.include_router(analytics_router)
