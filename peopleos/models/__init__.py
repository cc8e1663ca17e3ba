"""
Models module - SQLAlchemy ORM models.

Importing this package registers every table on Base.metadata.
"""
from peopleos.models.base import Base, utcnow
from peopleos.models.hiring import (
    AssessmentTemplate,
    CandidateAssessment,
    HiringFlow,
    HiringFlowSnapshot,
    HiringRubric,
    HiringRubricCriterion,
    InterestFormQuestion,
    InterestFormResponse,
    InterestFormTemplate,
    Job,
    JobCandidate,
    StageEmailTemplate,
)
from peopleos.models.people import (
    Employee,
    OffboardingTask,
    OffboardingTaskTemplate,
    OffboardingWorkflow,
    Offer,
    OfferEvent,
    OfferTemplate,
    OnboardingTask,
    OnboardingTaskTemplate,
    OnboardingWorkflow,
    User,
)
from peopleos.models.integrations import App, AppAccount, AppProvisioningRule, AuditLog

__all__ = [
    "Base", "utcnow",
    "HiringFlow", "HiringFlowSnapshot", "Job", "JobCandidate", "StageEmailTemplate",
    "HiringRubric", "HiringRubricCriterion",
    "InterestFormTemplate", "InterestFormQuestion", "InterestFormResponse",
    "AssessmentTemplate", "CandidateAssessment",
    "User", "Employee", "OfferTemplate", "Offer", "OfferEvent",
    "OnboardingTaskTemplate", "OnboardingWorkflow", "OnboardingTask",
    "OffboardingTaskTemplate", "OffboardingWorkflow", "OffboardingTask",
    "App", "AppProvisioningRule", "AppAccount", "AuditLog",
]
