"""SQLAlchemy models for people operations: users, employees, offers, workflows."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleos.models.base import Base, enum_type, new_token, utcnow
from peopleos.models.enums import (
    AppType,
    ContractType,
    EmployeeStatus,
    EmploymentType,
    OfferStatus,
    TaskStatus,
    TaskType,
    UserRole,
    WorkflowStatus,
)


class User(Base):
    """Login account. Optionally linked to an Employee for self-service."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    role: Mapped[UserRole] = mapped_column(enum_type(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    employee_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employee: Mapped[Optional["Employee"]] = relationship()


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    personal_email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    work_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    employment_type: Mapped[Optional[EmploymentType]] = mapped_column(enum_type(EmploymentType), nullable=True)
    contract_type: Mapped[Optional[ContractType]] = mapped_column(enum_type(ContractType), nullable=True)
    status: Mapped[EmployeeStatus] = mapped_column(
        enum_type(EmployeeStatus), default=EmployeeStatus.CANDIDATE, nullable=False
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    manager_id: Mapped[Optional[int]] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    salary_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    salary_currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    # Personal details (filled in through the onboarding link)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_street: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    address_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    emergency_contact_relationship: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    former_employer: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    former_job_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    former_employment_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    former_employment_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    former_employment_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    mbti_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    big_five: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    personality_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Free-form attributes (probation, bonus, board ids ...). Also matched by provisioning rules.
    meta: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    manager: Mapped[Optional["Employee"]] = relationship(remote_side=[id], back_populates="direct_reports")
    direct_reports: Mapped[list["Employee"]] = relationship(back_populates="manager")

    __table_args__ = (
        Index("ix_employees_status", "status"),
        Index("ix_employees_department", "department"),
    )

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, name='{self.full_name}', status='{self.status}')>"


# ============================================================
# OFFERS
# ============================================================

class OfferTemplate(Base):
    __tablename__ = "offer_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    employment_type: Mapped[Optional[EmploymentType]] = mapped_column(enum_type(EmploymentType), nullable=True)
    body_html: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    candidate_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("job_candidates.id", ondelete="SET NULL"), nullable=True
    )
    template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("offer_templates.id", ondelete="SET NULL"), nullable=True
    )
    public_token: Mapped[str] = mapped_column(String(64), default=new_token, unique=True, nullable=False)
    candidate_name: Mapped[str] = mapped_column(String(200), nullable=False)
    candidate_email: Mapped[str] = mapped_column(String(255), nullable=False)
    variables: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    rendered_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[OfferStatus] = mapped_column(enum_type(OfferStatus), default=OfferStatus.DRAFT, nullable=False)
    esign_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    esign_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    esign_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    signature_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    signature_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # data URL of a drawn signature
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    employee: Mapped["Employee"] = relationship()
    template: Mapped[Optional["OfferTemplate"]] = relationship()
    events: Mapped[list["OfferEvent"]] = relationship(
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="OfferEvent.created_at.desc()",
    )

    __table_args__ = (
        Index("ix_offers_status", "status"),
    )


class OfferEvent(Base):
    __tablename__ = "offer_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # created / sent / viewed / signed / cancelled ...
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    offer: Mapped["Offer"] = relationship(back_populates="events")


# ============================================================
# ONBOARDING
# ============================================================

class OnboardingTaskTemplate(Base):
    __tablename__ = "onboarding_task_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[TaskType] = mapped_column(enum_type(TaskType), default=TaskType.MANUAL, nullable=False)
    automation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    app_id: Mapped[Optional[int]] = mapped_column(ForeignKey("apps.id", ondelete="SET NULL"), nullable=True)
    app_type: Mapped[Optional[AppType]] = mapped_column(enum_type(AppType), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    app = relationship("App")


class OnboardingWorkflow(Base):
    __tablename__ = "onboarding_workflows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[WorkflowStatus] = mapped_column(
        enum_type(WorkflowStatus), default=WorkflowStatus.PENDING, nullable=False
    )
    access_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employee: Mapped["Employee"] = relationship()
    tasks: Mapped[list["OnboardingTask"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="OnboardingTask.sort_order",
    )


class OnboardingTask(Base):
    __tablename__ = "onboarding_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_id: Mapped[int] = mapped_column(ForeignKey("onboarding_workflows.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[TaskType] = mapped_column(enum_type(TaskType), default=TaskType.MANUAL, nullable=False)
    automation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    app_id: Mapped[Optional[int]] = mapped_column(ForeignKey("apps.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[TaskStatus] = mapped_column(enum_type(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    status_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    workflow: Mapped["OnboardingWorkflow"] = relationship(back_populates="tasks")


# ============================================================
# OFFBOARDING
# ============================================================

class OffboardingTaskTemplate(Base):
    __tablename__ = "offboarding_task_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[TaskType] = mapped_column(enum_type(TaskType), default=TaskType.MANUAL, nullable=False)
    automation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    app_type: Mapped[Optional[AppType]] = mapped_column(enum_type(AppType), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class OffboardingWorkflow(Base):
    __tablename__ = "offboarding_workflows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[WorkflowStatus] = mapped_column(
        enum_type(WorkflowStatus), default=WorkflowStatus.PENDING, nullable=False
    )
    is_immediate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employee: Mapped["Employee"] = relationship()
    tasks: Mapped[list["OffboardingTask"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="OffboardingTask.sort_order",
    )


class OffboardingTask(Base):
    __tablename__ = "offboarding_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_id: Mapped[int] = mapped_column(ForeignKey("offboarding_workflows.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[TaskType] = mapped_column(enum_type(TaskType), default=TaskType.MANUAL, nullable=False)
    automation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    app_id: Mapped[Optional[int]] = mapped_column(ForeignKey("apps.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[TaskStatus] = mapped_column(enum_type(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    status_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    workflow: Mapped["OffboardingWorkflow"] = relationship(back_populates="tasks")
