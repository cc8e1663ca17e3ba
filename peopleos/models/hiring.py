"""SQLAlchemy models for recruiting: flows, jobs, candidates, forms, rubrics, assessments.

A job points at an immutable HiringFlowSnapshot, so editing a flow never
changes the stages of jobs already running on it.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleos.models.base import Base, enum_type, utcnow
from peopleos.models.enums import (
    AssessmentStatus,
    AssessmentType,
    CandidateSource,
    CandidateStage,
    DecisionStatus,
    InboundChannel,
    JobStatus,
    OutboundChannel,
    QuestionType,
    Recommendation,
)


job_followers = Table(
    "job_followers",
    Base.metadata,
    Column("job_id", ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True),
    Column("employee_id", ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
)


class HiringFlow(Base):
    __tablename__ = "hiring_flows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    snapshots: Mapped[list["HiringFlowSnapshot"]] = relationship(
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="HiringFlowSnapshot.version.desc()",
    )

    @property
    def latest_snapshot(self) -> Optional["HiringFlowSnapshot"]:
        return self.snapshots[0] if self.snapshots else None

    def __repr__(self) -> str:
        return f"<HiringFlow(id={self.id}, name='{self.name}')>"


class HiringFlowSnapshot(Base):
    """Frozen stage list of a flow at one version."""
    __tablename__ = "hiring_flow_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    flow_id: Mapped[int] = mapped_column(ForeignKey("hiring_flows.id", ondelete="CASCADE"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    stages: Mapped[list] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    flow: Mapped["HiringFlow"] = relationship(back_populates="snapshots")
    jobs: Mapped[list["Job"]] = relationship(back_populates="hiring_flow_snapshot")

    __table_args__ = (
        UniqueConstraint("flow_id", "version", name="uq_flow_snapshot_version"),
    )


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    employment_type: Mapped[str] = mapped_column(String(50), default="full-time", nullable=False)
    status: Mapped[JobStatus] = mapped_column(enum_type(JobStatus), default=JobStatus.DRAFT, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    hires_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    salary_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    salary_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    equity: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    locations: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    hiring_flow_snapshot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("hiring_flow_snapshots.id", ondelete="SET NULL"), nullable=True
    )
    hiring_manager_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    interest_form_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("interest_form_templates.id", ondelete="SET NULL"), nullable=True
    )
    rubric_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("hiring_rubrics.id", ondelete="SET NULL"), nullable=True
    )

    # Public careers page / inbound webhook
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    webhook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    webhook_secret: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    hiring_flow_snapshot: Mapped[Optional["HiringFlowSnapshot"]] = relationship(back_populates="jobs")
    hiring_manager = relationship("Employee", foreign_keys=[hiring_manager_id])
    followers = relationship("Employee", secondary=job_followers)
    interest_form: Mapped[Optional["InterestFormTemplate"]] = relationship()
    rubric: Mapped[Optional["HiringRubric"]] = relationship()
    candidates: Mapped[list["JobCandidate"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_department", "department"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title='{self.title}', status='{self.status}')>"


class JobCandidate(Base):
    """A person in a job's pipeline."""
    __tablename__ = "job_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    current_company: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    current_role: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    cover_letter: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resume_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notice_period: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    salary_expectation: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    salary_currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stage: Mapped[CandidateStage] = mapped_column(
        enum_type(CandidateStage), default=CandidateStage.APPLIED, nullable=False
    )
    custom_stage_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    source: Mapped[CandidateSource] = mapped_column(
        enum_type(CandidateSource), default=CandidateSource.EXCELLER, nullable=False
    )
    inbound_channel: Mapped[Optional[InboundChannel]] = mapped_column(enum_type(InboundChannel), nullable=True)
    outbound_channel: Mapped[Optional[OutboundChannel]] = mapped_column(enum_type(OutboundChannel), nullable=True)
    added_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    decision_status: Mapped[Optional[DecisionStatus]] = mapped_column(enum_type(DecisionStatus), nullable=True)
    decision_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decision_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    decision_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    applied_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    job: Mapped["Job"] = relationship(back_populates="candidates")
    employee = relationship("Employee", foreign_keys=[employee_id])
    assessments: Mapped[list["CandidateAssessment"]] = relationship(
        back_populates="candidate",
        cascade="all, delete-orphan",
    )
    form_responses: Mapped[list["InterestFormResponse"]] = relationship(
        back_populates="candidate",
        cascade="all, delete-orphan",
        order_by="InterestFormResponse.submitted_at.desc()",
    )

    __table_args__ = (
        Index("ix_candidates_job", "job_id"),
        Index("ix_candidates_stage", "stage"),
        Index("ix_candidates_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<JobCandidate(id={self.id}, name='{self.name}', stage='{self.stage}')>"


class StageEmailTemplate(Base):
    """Email sent to a candidate when they enter a stage."""
    __tablename__ = "stage_email_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stage: Mapped[CandidateStage] = mapped_column(enum_type(CandidateStage), unique=True, nullable=False)
    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# ============================================================
# RUBRICS
# ============================================================

class HiringRubric(Base):
    __tablename__ = "hiring_rubrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    criteria: Mapped[list["HiringRubricCriterion"]] = relationship(
        back_populates="rubric",
        cascade="all, delete-orphan",
        order_by="HiringRubricCriterion.sort_order",
    )


class HiringRubricCriterion(Base):
    __tablename__ = "hiring_rubric_criteria"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rubric_id: Mapped[int] = mapped_column(ForeignKey("hiring_rubrics.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    weight: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    rubric: Mapped["HiringRubric"] = relationship(back_populates="criteria")


# ============================================================
# INTEREST FORMS
# ============================================================

class InterestFormTemplate(Base):
    __tablename__ = "interest_form_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    questions: Mapped[list["InterestFormQuestion"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="InterestFormQuestion.sort_order",
    )
    responses: Mapped[list["InterestFormResponse"]] = relationship(back_populates="template")


class InterestFormQuestion(Base):
    __tablename__ = "interest_form_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("interest_form_templates.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[QuestionType] = mapped_column(enum_type(QuestionType), default=QuestionType.TEXT, nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    options: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    template: Mapped["InterestFormTemplate"] = relationship(back_populates="questions")


class InterestFormResponse(Base):
    """A submission. The answers live in MongoDB under document_id."""
    __tablename__ = "interest_form_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("job_candidates.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("interest_form_templates.id", ondelete="SET NULL"), nullable=True
    )
    document_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    candidate: Mapped["JobCandidate"] = relationship(back_populates="form_responses")
    template: Mapped[Optional["InterestFormTemplate"]] = relationship(back_populates="responses")


# ============================================================
# ASSESSMENTS
# ============================================================

class AssessmentTemplate(Base):
    __tablename__ = "assessment_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[AssessmentType] = mapped_column(enum_type(AssessmentType), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    team_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # null = global
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    passing_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    external_platform: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email_subject: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    email_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    work_trial: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assessments: Mapped[list["CandidateAssessment"]] = relationship(back_populates="template")


class CandidateAssessment(Base):
    __tablename__ = "candidate_assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("job_candidates.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[int] = mapped_column(ForeignKey("assessment_templates.id"), nullable=False)
    status: Mapped[AssessmentStatus] = mapped_column(
        enum_type(AssessmentStatus), default=AssessmentStatus.NOT_STARTED, nullable=False
    )
    invite_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    invite_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    invited_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    recommendation: Mapped[Optional[Recommendation]] = mapped_column(enum_type(Recommendation), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evaluated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    evaluated_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    candidate: Mapped["JobCandidate"] = relationship(back_populates="assessments")
    template: Mapped["AssessmentTemplate"] = relationship(back_populates="assessments")

    __table_args__ = (
        UniqueConstraint("candidate_id", "template_id", name="uq_candidate_template"),
    )
