"""
Enumerations shared by ORM models and API schemas.

Member names equal their stored values.
"""

from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    HR_ADMIN = "HR_ADMIN"
    IT_ADMIN = "IT_ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


# ============================================================
# HIRING
# ============================================================

class JobStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    HIRED = "HIRED"


class CandidateStage(str, Enum):
    APPLIED = "APPLIED"
    SHORTLISTED = "SHORTLISTED"
    HR_SCREEN = "HR_SCREEN"
    TEAM_CHAT = "TEAM_CHAT"
    ADVISOR_CHAT = "ADVISOR_CHAT"
    TECHNICAL = "TECHNICAL"
    PANEL = "PANEL"
    TRIAL = "TRIAL"
    CEO_CHAT = "CEO_CHAT"
    OFFER = "OFFER"
    HIRED = "HIRED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    ARCHIVED = "ARCHIVED"


class CandidateSource(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    RECRUITER = "RECRUITER"
    EXCELLER = "EXCELLER"


class InboundChannel(str, Enum):
    YC = "YC"
    PEOPLEOS = "PEOPLEOS"
    COMPANY_SITE = "COMPANY_SITE"
    OTHER = "OTHER"


class OutboundChannel(str, Enum):
    LINKEDIN = "LINKEDIN"
    JOB_BOARDS = "JOB_BOARDS"
    GITHUB = "GITHUB"
    TWITTER = "TWITTER"
    OTHER = "OTHER"


class DecisionStatus(str, Enum):
    PENDING = "PENDING"
    HIRE = "HIRE"
    HOLD = "HOLD"
    NO_HIRE = "NO_HIRE"


class QuestionType(str, Enum):
    TEXT = "TEXT"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    URL = "URL"
    TEXTAREA = "TEXTAREA"
    SELECT = "SELECT"
    MULTISELECT = "MULTISELECT"
    RADIO = "RADIO"
    CHECKBOX = "CHECKBOX"
    DATE = "DATE"
    FILE = "FILE"
    SCALE = "SCALE"


class AssessmentType(str, Enum):
    CODING_TEST = "CODING_TEST"
    KANDI_IO = "KANDI_IO"
    PERSONALITY_MBTI = "PERSONALITY_MBTI"
    PERSONALITY_BIG5 = "PERSONALITY_BIG5"
    WORK_TRIAL = "WORK_TRIAL"
    CUSTOM = "CUSTOM"


class AssessmentStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    INVITED = "INVITED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class Recommendation(str, Enum):
    HIRE = "HIRE"
    HOLD = "HOLD"
    NO_HIRE = "NO_HIRE"


# ============================================================
# PEOPLE
# ============================================================

class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACTOR = "CONTRACTOR"


class ContractType(str, Enum):
    PERMANENT = "PERMANENT"
    FIXED_TERM = "FIXED_TERM"
    CONTRACTOR = "CONTRACTOR"
    INTERN = "INTERN"


class EmployeeStatus(str, Enum):
    CANDIDATE = "CANDIDATE"
    OFFER_SENT = "OFFER_SENT"
    OFFER_SIGNED = "OFFER_SIGNED"
    HIRED_PENDING_START = "HIRED_PENDING_START"
    ACTIVE = "ACTIVE"
    OFFBOARDING = "OFFBOARDING"
    EXITED = "EXITED"


class OfferStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    SIGNED = "SIGNED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class WorkflowStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class TaskType(str, Enum):
    MANUAL = "MANUAL"
    AUTOMATED = "AUTOMATED"


# ============================================================
# INTEGRATIONS / AUDIT
# ============================================================

class AppType(str, Enum):
    GOOGLE_WORKSPACE = "GOOGLE_WORKSPACE"
    SLACK = "SLACK"
    STANDUPNINJA = "STANDUPNINJA"
    WEBHOOK = "WEBHOOK"
    CUSTOM = "CUSTOM"


class AppAccountStatus(str, Enum):
    PROVISIONING = "PROVISIONING"
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    FAILED = "FAILED"
    DEPROVISIONED = "DEPROVISIONED"
    DISABLED = "DISABLED"


class ActorType(str, Enum):
    user = "user"
    system = "system"
    webhook = "webhook"
