"""
Stage emails - tell a candidate they moved forward.

One template per stage; variables are {candidate_name}, {job_title} and {stage}.
"""
import logging

from sqlalchemy import select

from peopleos.db.postgres import get_db_session
from peopleos.models import JobCandidate, StageEmailTemplate
from peopleos.models.enums import CandidateStage
from peopleos.services.email_service import send_email, text_to_html
from peopleos.services.pipeline import STAGE_DISPLAY_NAMES
from peopleos.utils.templating import render_template

logger = logging.getLogger(__name__)


def send_stage_email(candidate_id: int, stage: CandidateStage) -> bool:
    """
    Background task: render the active template for `stage` and email the candidate.

    Returns:
        True when an email went out
    """
    try:
        with get_db_session() as db:
            template = db.scalar(
                select(StageEmailTemplate).where(
                    StageEmailTemplate.stage == stage,
                    StageEmailTemplate.is_active.is_(True),
                )
            )
            if template is None:
                logger.info(f"No stage email template for {stage.value}, nothing sent")
                return False

            candidate = db.get(JobCandidate, candidate_id)
            if candidate is None:
                logger.warning(f"Stage email skipped: candidate {candidate_id} not found")
                return False

            variables = {
                "candidate_name": candidate.name,
                "job_title": candidate.job.title,
                "stage": STAGE_DISPLAY_NAMES.get(stage, stage.value),
            }
            to = candidate.email
            subject = render_template(template.subject, variables)
            body = text_to_html(render_template(template.body, variables))
    except Exception as e:
        logger.error(f"Could not prepare stage email for candidate {candidate_id}: {e}")
        return False

    return send_email(to, subject, body)
