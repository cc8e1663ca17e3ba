"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Enums live in peopleos.models.enums so the ORM can share them.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict, Literal
from datetime import date, datetime
from enum import Enum

from peopleos.models.enums import (
    ActorType,
    AppAccountStatus,
    AppType,
    AssessmentStatus,
    AssessmentType,
    CandidateSource,
    CandidateStage,
    ContractType,
    DecisionStatus,
    EmployeeStatus,
    EmploymentType,
    InboundChannel,
    JobStatus,
    OfferStatus,
    OutboundChannel,
    QuestionType,
    Recommendation,
    TaskStatus,
    TaskType,
    UserRole,
    WorkflowStatus,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: UserRole

class UserResponse(ORMModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    employee_id: Optional[int] = None
    created_at: datetime

class UserUpdate(BaseModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    employee_id: Optional[int] = None


# ============================================================
# HIRING FLOW SCHEMAS
# ============================================================

def _clean_stages(stages: Optional[List[str]]) -> Optional[List[str]]:
    if stages is None:
        return stages
    cleaned = [s.strip() for s in stages]
    for stage in cleaned:
        if not 1 <= len(stage) <= 100:
            raise ValueError("Stage names must be 1-100 characters")
    return cleaned


class HiringFlowCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    stages: List[str] = Field(..., min_length=2)
    is_default: bool = False

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v):
        return _clean_stages(v)

class HiringFlowUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    stages: Optional[List[str]] = Field(None, min_length=2)
    is_default: Optional[bool] = None
    # old stage name -> new stage name (None = stage removed)
    stage_mapping: Optional[Dict[str, Optional[str]]] = None

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v):
        return _clean_stages(v)

class HiringFlowSnapshotResponse(ORMModel):
    id: int
    flow_id: int
    version: int
    stages: List[str]
    created_at: datetime

class HiringFlowResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime
    snapshots: List[HiringFlowSnapshotResponse] = []

class HiringFlowSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_default: bool
    stages: List[str]
    latest_version: int
    total_versions: int
    total_jobs: int
    outdated_jobs: int

class OutdatedJobResponse(BaseModel):
    id: int
    title: str
    status: JobStatus
    snapshot_version: int
    snapshot_stages: List[str]
    candidate_count: int

class FlowDiffResponse(BaseModel):
    added: List[str]
    removed: List[str]
    unchanged: List[str]
    from_version: int
    to_version: int
    from_stages: List[str]
    to_stages: List[str]

class JobFlowUpgradeResponse(BaseModel):
    message: str
    job_id: int
    version: int


# ============================================================
# JOB SCHEMAS
# ============================================================

class JobCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    department: Optional[str] = None
    employment_type: str = "full-time"
    status: JobStatus = JobStatus.DRAFT
    priority: int = Field(3, ge=1, le=5)
    deadline: Optional[datetime] = None
    hires_count: int = Field(1, ge=1)
    salary_min: Optional[float] = Field(None, ge=0)
    salary_max: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    equity: Optional[str] = None
    locations: List[str] = []
    description: Optional[str] = None
    hiring_flow_id: Optional[int] = None
    hiring_manager_id: Optional[int] = None
    interest_form_id: Optional[int] = None
    rubric_id: Optional[int] = None
    follower_ids: List[int] = []

class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    department: Optional[str] = None
    employment_type: Optional[str] = None
    status: Optional[JobStatus] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    deadline: Optional[datetime] = None
    hires_count: Optional[int] = Field(None, ge=1)
    salary_min: Optional[float] = Field(None, ge=0)
    salary_max: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    equity: Optional[str] = None
    locations: Optional[List[str]] = None
    description: Optional[str] = None
    hiring_flow_id: Optional[int] = None
    hiring_manager_id: Optional[int] = None
    interest_form_id: Optional[int] = None
    rubric_id: Optional[int] = None
    follower_ids: Optional[List[int]] = None

class WebhookSettingsUpdate(BaseModel):
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    is_public: Optional[bool] = None

class JobStats(BaseModel):
    applicants: int = 0
    in_review: int = 0
    interviewing: int = 0
    offer_stage: int = 0
    hired: int = 0
    avg_score: Optional[int] = None
    max_score: Optional[int] = None

class JobResponse(BaseModel):
    id: int
    title: str
    department: Optional[str] = None
    employment_type: str
    status: JobStatus
    priority: int
    deadline: Optional[datetime] = None
    hires_count: int
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    currency: str
    equity: Optional[str] = None
    locations: List[str] = []
    description: Optional[str] = None
    hiring_flow_id: Optional[int] = None
    hiring_flow_snapshot_id: Optional[int] = None
    hiring_flow_stages: List[str] = []
    hiring_manager_id: Optional[int] = None
    interest_form_id: Optional[int] = None
    rubric_id: Optional[int] = None
    follower_ids: List[int] = []
    is_public: bool
    webhook_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class JobListItem(JobResponse):
    stats: JobStats
    stage_breakdown: Dict[str, int] = {}

class JobDetailResponse(JobResponse):
    flow_outdated: bool = False
    latest_version: Optional[int] = None
    current_version: Optional[int] = None

class JobCounts(BaseModel):
    all: int
    active: int
    draft: int
    paused: int
    hired: int

class PublicJobResponse(BaseModel):
    id: int
    title: str
    department: Optional[str] = None
    employment_type: str
    locations: List[str] = []
    description: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    currency: str
    status: JobStatus
    interest_form_id: Optional[int] = None
    stages: List[str] = []


# ============================================================
# CANDIDATE SCHEMAS
# ============================================================

class CandidateAdd(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_company: Optional[str] = None
    current_role: Optional[str] = None
    location: Optional[str] = None
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None
    notice_period: Optional[str] = None
    salary_expectation: Optional[float] = None
    salary_currency: Optional[str] = None
    notes: Optional[str] = None
    score: Optional[int] = Field(None, ge=0, le=100)
    source: CandidateSource = CandidateSource.EXCELLER
    inbound_channel: Optional[InboundChannel] = None
    outbound_channel: Optional[OutboundChannel] = None

class CandidateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_company: Optional[str] = None
    current_role: Optional[str] = None
    location: Optional[str] = None
    resume_url: Optional[str] = None
    notice_period: Optional[str] = None
    salary_expectation: Optional[float] = None
    salary_currency: Optional[str] = None
    notes: Optional[str] = None
    score: Optional[int] = Field(None, ge=0, le=100)
    stage: Optional[CandidateStage] = None
    custom_stage_name: Optional[str] = None
    decision_status: Optional[DecisionStatus] = None
    decision_notes: Optional[str] = None

class BulkStageUpdate(BaseModel):
    candidate_ids: List[int] = Field(..., min_length=1)
    stage: CandidateStage

class CandidateResponse(ORMModel):
    id: int
    job_id: int
    employee_id: Optional[int] = None
    name: str
    email: str
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_company: Optional[str] = None
    current_role: Optional[str] = None
    location: Optional[str] = None
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None
    notice_period: Optional[str] = None
    salary_expectation: Optional[float] = None
    salary_currency: Optional[str] = None
    notes: Optional[str] = None
    score: Optional[int] = None
    stage: CandidateStage
    custom_stage_name: Optional[str] = None
    source: CandidateSource
    inbound_channel: Optional[InboundChannel] = None
    outbound_channel: Optional[OutboundChannel] = None
    added_by_id: Optional[int] = None
    decision_status: Optional[DecisionStatus] = None
    decision_notes: Optional[str] = None
    decision_at: Optional[datetime] = None
    decision_by_id: Optional[int] = None
    applied_at: datetime
    updated_at: datetime

class CandidateWithJob(CandidateResponse):
    job_title: Optional[str] = None
    job_department: Optional[str] = None

class StageInfo(BaseModel):
    stage: CandidateStage
    display_name: str

class StageCount(BaseModel):
    stage: CandidateStage
    display_name: str
    count: int

class JobCandidatesResponse(BaseModel):
    candidates: List[CandidateResponse]
    counts: Dict[str, int]
    stage_info: List[StageInfo]
    hiring_flow_stages: List[str] = []

class CandidateListResponse(BaseModel):
    candidates: List[CandidateWithJob]
    total: int
    by_stage_counts: List[StageCount]

class CandidateCreate(BaseModel):
    """Manual entry from the candidates screen."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    job_id: Optional[int] = None
    source: Optional[Literal["linkedin", "job-board", "recruiter", "referral", "careers-page"]] = None
    linkedin_url: Optional[str] = None
    current_company: Optional[str] = None
    current_role: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

class ApplicationSubmit(BaseModel):
    """Public careers page application."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_company: Optional[str] = None
    current_role: Optional[str] = None
    location: Optional[str] = None
    cover_letter: Optional[str] = Field(None, min_length=10)
    resume_url: Optional[str] = None
    inbound_channel: Optional[InboundChannel] = None

    @field_validator("linkedin_url")
    @classmethod
    def add_scheme(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            v = "https://" + v
        return v

class ApplicationResponse(BaseModel):
    success: bool
    candidate_id: int
    message: str

class ResumeUploadResponse(BaseModel):
    candidate_id: int
    document_id: str
    filename: str
    characters: int

class CandidateAnalysisResponse(BaseModel):
    success: bool
    candidate_id: int
    version: Optional[int] = None
    analysis: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# ============================================================
# STAGE EMAIL SCHEMAS
# ============================================================

class StageEmailCreate(BaseModel):
    stage: CandidateStage
    subject: str = Field(..., min_length=1, max_length=300)
    body: str = Field(..., min_length=1)
    is_active: bool = True

class StageEmailUpdate(BaseModel):
    subject: Optional[str] = Field(None, min_length=1, max_length=300)
    body: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None

class StageEmailResponse(ORMModel):
    id: int
    stage: CandidateStage
    subject: str
    body: str
    is_active: bool
    created_at: datetime


# ============================================================
# RUBRIC SCHEMAS
# ============================================================

class RubricCriterionInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    weight: int = Field(1, ge=1, le=5)

class RubricCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    criteria: List[RubricCriterionInput] = []

class RubricUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    criteria: Optional[List[RubricCriterionInput]] = None

class RubricCriterionResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    weight: int
    sort_order: int

class RubricResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    version: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    criteria: List[RubricCriterionResponse] = []

class SelectOption(BaseModel):
    id: int
    name: str


# ============================================================
# INTEREST FORM SCHEMAS
# ============================================================

class FormQuestionInput(BaseModel):
    label: str = Field(..., min_length=1, max_length=500)
    help_text: Optional[str] = None
    type: QuestionType = QuestionType.TEXT
    is_required: bool = False
    options: Optional[List[str]] = None

class InterestFormCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    is_default: bool = False
    questions: List[FormQuestionInput] = []

class InterestFormUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    questions: Optional[List[FormQuestionInput]] = None

class FormQuestionResponse(ORMModel):
    id: int
    question: str
    description: Optional[str] = None
    type: QuestionType
    required: bool
    options: Optional[List[str]] = None
    sort_order: int

class InterestFormResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime
    questions: List[FormQuestionResponse] = []

class InterestFormListItem(InterestFormResponse):
    question_count: int
    response_count: int

class PublicFormResponse(BaseModel):
    job_id: int
    job_title: str
    form: InterestFormResponse

class FormSubmission(BaseModel):
    candidate_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    answers: Dict[str, Any] = {}  # question id -> answer

class FormSubmissionResponse(BaseModel):
    success: bool
    candidate_id: int
    response_id: int

class CandidateFormResponse(BaseModel):
    id: int
    template_id: Optional[int] = None
    template_name: Optional[str] = None
    submitted_at: datetime
    answers: List[Dict[str, Any]] = []


# ============================================================
# ASSESSMENT SCHEMAS
# ============================================================

ASSESSMENT_TYPE_NAMES = {
    AssessmentType.CODING_TEST: "Coding Test",
    AssessmentType.KANDI_IO: "Kandi.io",
    AssessmentType.PERSONALITY_MBTI: "Personality (MBTI)",
    AssessmentType.PERSONALITY_BIG5: "Personality (Big5)",
    AssessmentType.WORK_TRIAL: "Work Trial",
    AssessmentType.CUSTOM: "Custom",
}


class WorkTrialTask(BaseModel):
    name: str
    description: Optional[str] = None
    deliverables: Optional[str] = None

class WorkTrialConfig(BaseModel):
    tasks: List[WorkTrialTask] = []
    duration_days: int = 5
    default_buddy_id: Optional[int] = None
    dashboard_template_url: Optional[str] = None

class AssessmentTemplateCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    type: AssessmentType
    description: Optional[str] = Field(None, max_length=2000)
    team_id: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    instructions: Optional[str] = None
    external_url: Optional[str] = None
    external_platform: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    sort_order: Optional[int] = None
    work_trial: Optional[WorkTrialConfig] = None

class AssessmentTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    team_id: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    instructions: Optional[str] = None
    external_url: Optional[str] = None
    external_platform: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None
    work_trial: Optional[WorkTrialConfig] = None

class AssessmentTemplateResponse(ORMModel):
    id: int
    name: str
    type: AssessmentType
    type_display_name: str = ""
    description: Optional[str] = None
    team_id: Optional[str] = None
    duration_minutes: Optional[int] = None
    passing_score: Optional[float] = None
    instructions: Optional[str] = None
    external_url: Optional[str] = None
    external_platform: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    work_trial: Optional[Dict[str, Any]] = None
    sort_order: int
    is_active: bool
    created_at: datetime

    @model_validator(mode="after")
    def fill_display_name(self):
        if not self.type_display_name:
            self.type_display_name = ASSESSMENT_TYPE_NAMES.get(self.type, self.type.value)
        return self

class CandidateAssessmentCreate(BaseModel):
    candidate_id: int
    template_id: int
    expires_in_days: int = Field(7, ge=1)
    notes: Optional[str] = None

class SendInviteRequest(BaseModel):
    send_email: bool = True

class AssessmentResultInput(BaseModel):
    score: Optional[float] = Field(None, ge=0, le=100)
    recommendation: Optional[Recommendation] = None
    summary: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    status: AssessmentStatus = AssessmentStatus.COMPLETED
    notes: Optional[str] = None

class CandidateAssessmentResponse(BaseModel):
    id: int
    candidate_id: int
    candidate_name: str
    candidate_email: str
    job_id: int
    template_id: int
    template_name: str
    type: AssessmentType
    status: AssessmentStatus
    invite_url: Optional[str] = None
    invited_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: Optional[float] = None
    recommendation: Optional[Recommendation] = None
    summary: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    evaluated_at: Optional[datetime] = None
    evaluated_by_id: Optional[int] = None
    created_at: datetime

class InviteLinkResponse(BaseModel):
    assessment_id: int
    url: str
    token: str


# ============================================================
# EMPLOYEE SCHEMAS
# ============================================================

class EmployeeCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    personal_email: EmailStr
    work_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    contract_type: Optional[ContractType] = None
    start_date: Optional[datetime] = None
    manager_id: Optional[int] = None
    salary_amount: Optional[float] = Field(None, ge=0)
    salary_currency: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

class EmployeeUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    personal_email: Optional[EmailStr] = None
    work_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    contract_type: Optional[ContractType] = None
    status: Optional[EmployeeStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    manager_id: Optional[int] = None
    salary_amount: Optional[float] = Field(None, ge=0)
    salary_currency: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

class EmployeeSelfUpdate(BaseModel):
    phone: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None

class EmployeeBrief(ORMModel):
    id: int
    full_name: str
    job_title: Optional[str] = None
    department: Optional[str] = None
    work_email: Optional[str] = None
    status: EmployeeStatus

class EmployeeResponse(ORMModel):
    id: int
    full_name: str
    personal_email: str
    work_email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    contract_type: Optional[ContractType] = None
    status: EmployeeStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    manager_id: Optional[int] = None
    salary_amount: Optional[float] = None
    salary_currency: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    mbti_type: Optional[str] = None
    personality_completed: bool = False
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

class EmployeeListResponse(BaseModel):
    employees: List[EmployeeResponse]
    total: int
    page: int
    pages: int


# ============================================================
# OFFER SCHEMAS
# ============================================================

class OfferTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    body_html: str = Field(..., min_length=1)

class OfferTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    body_html: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None

class OfferTemplateResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    body_html: str
    is_active: bool
    created_at: datetime

class OfferCreate(BaseModel):
    template_id: int
    employee_id: Optional[int] = None
    candidate_id: Optional[int] = None
    candidate_name: str = Field(..., min_length=1, max_length=200)
    candidate_email: EmailStr
    variables: Dict[str, Any] = {}

class OfferUpdate(BaseModel):
    template_id: Optional[int] = None
    candidate_name: Optional[str] = Field(None, min_length=1, max_length=200)
    candidate_email: Optional[EmailStr] = None
    variables: Optional[Dict[str, Any]] = None

class OfferPreviewRequest(BaseModel):
    template_id: int
    variables: Dict[str, Any] = {}

class OfferPreviewResponse(BaseModel):
    rendered_html: str

class OfferEventResponse(ORMModel):
    id: int
    type: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("details", "metadata"))
    created_at: datetime

class OfferResponse(ORMModel):
    id: int
    public_token: str
    employee_id: int
    candidate_id: Optional[int] = None
    template_id: Optional[int] = None
    candidate_name: str
    candidate_email: str
    variables: Dict[str, Any] = {}
    rendered_html: Optional[str] = None
    status: OfferStatus
    esign_provider: Optional[str] = None
    esign_sent_at: Optional[datetime] = None
    esign_signed_at: Optional[datetime] = None
    signature_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    events: List[OfferEventResponse] = []

class OfferListResponse(BaseModel):
    offers: List[OfferResponse]
    total: int
    page: int
    pages: int

class PublicOfferResponse(BaseModel):
    candidate_name: str
    rendered_html: Optional[str] = None
    status: OfferStatus
    esign_signed_at: Optional[datetime] = None

class OfferSignRequest(BaseModel):
    signature: str = Field(..., min_length=1, max_length=200)  # typed full name
    signature_image: Optional[str] = Field(None, max_length=500_000)

    @field_validator("signature")
    @classmethod
    def signature_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Signature is required")
        return v.strip()


# ============================================================
# ONBOARDING SCHEMAS
# ============================================================

class TaskTemplateKind(str, Enum):
    MANUAL = "MANUAL"
    INTEGRATION = "INTEGRATION"


class MoveDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


class OnboardingTaskTemplateCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    kind: TaskTemplateKind = TaskTemplateKind.MANUAL
    app_id: Optional[int] = None

class OnboardingTaskTemplateUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    kind: Optional[TaskTemplateKind] = None
    app_id: Optional[int] = None
    is_active: Optional[bool] = None

class MoveTemplateRequest(BaseModel):
    direction: MoveDirection

class OnboardingTaskTemplateResponse(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    type: TaskType
    automation_type: Optional[str] = None
    app_id: Optional[int] = None
    app_type: Optional[AppType] = None
    sort_order: int
    is_active: bool

class WorkflowTaskResponse(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    type: TaskType
    automation_type: Optional[str] = None
    app_id: Optional[int] = None
    status: TaskStatus
    status_message: Optional[str] = None
    attempts: int
    notes: Optional[str] = None
    sort_order: int
    completed_at: Optional[datetime] = None

class OnboardingWorkflowResponse(BaseModel):
    id: int
    employee_id: int
    employee_name: str
    status: WorkflowStatus
    access_token: str
    token_expires_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    progress: int = 0
    tasks: List[WorkflowTaskResponse] = []

class OnboardingWorkflowList(BaseModel):
    workflows: List[OnboardingWorkflowResponse]
    total: int
    page: int
    pages: int

class StartNewOnboardingRequest(BaseModel):
    employee_id: int
    start_date: datetime
    manager_id: Optional[int] = None
    department: Optional[str] = None
    work_email: Optional[EmailStr] = None
    job_title: Optional[str] = None
    jira_board_id: Optional[str] = None
    bonus: Optional[str] = None
    probation_period: Optional[str] = None
    probation_goals: Optional[str] = None
    probation_goals_url: Optional[str] = None

class StartOnboardingRequest(BaseModel):
    employee_id: int

class CompleteTaskRequest(BaseModel):
    notes: Optional[str] = None

class SkipTaskRequest(BaseModel):
    reason: Optional[str] = None
    send_byod_agreement: bool = False

class SelfServiceProfile(ORMModel):
    id: int
    full_name: str
    personal_email: str
    work_email: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    start_date: Optional[datetime] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    former_employer: Optional[str] = None
    former_job_title: Optional[str] = None
    former_employment_start: Optional[date] = None
    former_employment_end: Optional[date] = None
    former_employment_submitted_at: Optional[datetime] = None
    mbti_type: Optional[str] = None
    big_five: Optional[Dict[str, Any]] = None
    personality_completed: bool = False

class PublicOnboardingResponse(BaseModel):
    workflow_id: int
    status: WorkflowStatus
    token_expires_at: datetime
    employee: SelfServiceProfile
    tasks: List[WorkflowTaskResponse] = []

class EmployeeInfoUpdate(BaseModel):
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    former_employer: Optional[str] = None
    former_job_title: Optional[str] = None
    former_employment_start: Optional[date] = None
    former_employment_end: Optional[date] = None
    mbti_type: Optional[str] = Field(None, max_length=10)
    big_five: Optional[Dict[str, float]] = None
    personality_completed: Optional[bool] = None

class RosterRow(BaseModel):
    user_id: str
    name: str
    location: str
    team: str
    start_date: str
    completion_percent: int
    last_reminder: str
    reminder_count: int
    last_updated: str
    status: Literal["Completed", "In Progress", "Not Started"]

class CatalogTask(BaseModel):
    id: str
    section: Literal["todo", "to_read", "to_watch"]
    title: str
    url: Optional[str] = None
    notes: Optional[str] = None
    applies_to: Literal["all", "full_time", "contract"] = "all"
    is_conditional: bool = False


# ============================================================
# OFFBOARDING SCHEMAS
# ============================================================

class StartOffboardingRequest(BaseModel):
    employee_id: int
    end_date: Optional[datetime] = None
    is_immediate: bool = False
    reason: Optional[str] = None
    extra_tasks: Optional[List[str]] = None  # None = default handover task

class OffboardingTaskTemplateResponse(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    type: TaskType
    automation_type: Optional[str] = None
    app_type: Optional[AppType] = None
    sort_order: int
    is_active: bool

class OffboardingWorkflowResponse(BaseModel):
    id: int
    employee_id: int
    employee_name: str
    status: WorkflowStatus
    is_immediate: bool
    scheduled_for: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reason: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    tasks: List[WorkflowTaskResponse] = []


# ============================================================
# INTEGRATION SCHEMAS
# ============================================================

class AppCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: AppType
    description: Optional[str] = None
    is_enabled: bool = True
    is_connected: bool = False
    config: Dict[str, Any] = {}

class AppUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_enabled: Optional[bool] = None
    is_connected: Optional[bool] = None
    config: Optional[Dict[str, Any]] = None

class AppResponse(ORMModel):
    id: int
    name: str
    type: AppType
    description: Optional[str] = None
    is_enabled: bool
    is_connected: bool
    config: Dict[str, Any] = {}
    created_at: datetime

class ProvisioningRuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    condition: Dict[str, Any] = {}
    provision_data: Dict[str, Any] = {}
    priority: int = 0
    is_active: bool = True

class ProvisioningRuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    condition: Optional[Dict[str, Any]] = None
    provision_data: Optional[Dict[str, Any]] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None

class ProvisioningRuleResponse(ORMModel):
    id: int
    app_id: int
    name: str
    condition: Dict[str, Any]
    provision_data: Dict[str, Any]
    priority: int
    is_active: bool

class AppAccountResponse(BaseModel):
    id: int
    employee_id: int
    app_id: int
    app_name: str
    status: AppAccountStatus
    status_message: Optional[str] = None
    external_user_id: Optional[str] = None
    external_email: Optional[str] = None
    provisioned_resources: Optional[Dict[str, Any]] = None
    provisioned_at: Optional[datetime] = None
    deprovisioned_at: Optional[datetime] = None

class IntegrationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    external_user_id: Optional[str] = None
    external_email: Optional[str] = None
    account_id: Optional[int] = None

class OutboundTestRequest(BaseModel):
    url: str
    api_key: Optional[str] = None

class OutboundEventInfo(BaseModel):
    id: str
    label: str


# ============================================================
# AUDIT SCHEMAS
# ============================================================

class AuditLogResponse(ORMModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    actor_type: ActorType
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("details", "metadata"))
    created_at: datetime


# ============================================================
# ANALYTICS SCHEMAS
# ============================================================

class MonthlyMetrics(BaseModel):
    year: int
    month: int
    no_of_trials: int
    trial_pass_rate: int
    interview_trial_rate: int
    no_of_candidates_hired: int
    hiring_velocity: int
    total_applied: int

class QuarterlyMetrics(BaseModel):
    year: int
    quarter: int
    hiring_velocity: int
    avg_time_to_hire: int
    quality_of_hire: int
    hiring_fill_rate: int
    offers_sent: int
    offers_signed: int
    offer_acceptance_rate: int
    cost_per_hire: int = 0

class WeeklyRoleMetrics(BaseModel):
    role: str
    week_start: date
    applications: int
    qualified_cvs: int
    interviews: int
    hires: int

class TrendPoint(BaseModel):
    label: str
    start: datetime
    end: datetime
    value: int

class TrendResponse(BaseModel):
    metric: str
    granularity: str
    points: List[TrendPoint]


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
