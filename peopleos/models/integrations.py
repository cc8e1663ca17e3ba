"""SQLAlchemy models for connected apps, provisioning and the audit trail."""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleos.models.base import Base, enum_type, utcnow
from peopleos.models.enums import ActorType, AppAccountStatus, AppType


class App(Base):
    """An external application employees get accounts in.

    config holds connector settings, e.g. {"webhook": {...}}, {"outbound": {...}},
    {"bot_token": ...} for Slack or {"domain": ...} for Google Workspace.
    """
    __tablename__ = "apps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    type: Mapped[AppType] = mapped_column(enum_type(AppType), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_connected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    config: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    rules: Mapped[list["AppProvisioningRule"]] = relationship(
        back_populates="app",
        cascade="all, delete-orphan",
        order_by="AppProvisioningRule.priority.desc()",
    )
    accounts: Mapped[list["AppAccount"]] = relationship(back_populates="app", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<App(id={self.id}, name='{self.name}', type='{self.type}')>"


class AppProvisioningRule(Base):
    """condition: {"department": "Engineering"}; provision_data: channels, groups, org unit ..."""
    __tablename__ = "app_provisioning_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_id: Mapped[int] = mapped_column(ForeignKey("apps.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    condition: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    provision_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    app: Mapped["App"] = relationship(back_populates="rules")


class AppAccount(Base):
    __tablename__ = "app_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    app_id: Mapped[int] = mapped_column(ForeignKey("apps.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[AppAccountStatus] = mapped_column(
        enum_type(AppAccountStatus), default=AppAccountStatus.PROVISIONING, nullable=False
    )
    status_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_user_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    external_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provisioned_resources: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    provisioned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deprovisioned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    app: Mapped["App"] = relationship(back_populates="accounts")
    employee = relationship("Employee")

    __table_args__ = (
        UniqueConstraint("employee_id", "app_id", name="uq_app_account_employee_app"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    actor_type: Mapped[ActorType] = mapped_column(enum_type(ActorType), default=ActorType.user, nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_action", "action"),
        Index("ix_audit_resource", "resource_type", "resource_id"),
    )
