"""
PeopleOS
Applicant tracking, onboarding and offboarding for a people team.

Architecture:
- Relational DB (SQLAlchemy ORM): jobs, candidates, employees, offers, workflows
- MongoDB: schema-flexible documents (form answers, resumes, AI analyses)
- DeepSeek AI: candidate analysis only
- Integrations: Google Workspace, Slack, generic webhooks
"""

__version__ = "1.0.0"
