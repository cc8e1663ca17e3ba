"""
DeepSeek API Client

DeepSeek speaks the OpenAI chat-completions API, so the openai library
is used with a different base URL. Every analysis is stored in MongoDB
and only re-run on request, which keeps the number of calls small.
"""
import json
import logging
import re
from functools import lru_cache

from openai import OpenAI

from peopleos.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


CANDIDATE_ANALYSIS_PROMPT = """You are an experienced technical recruiter reviewing a job candidate.
Assess the candidate against the job using the profile and the interest form answers.
Return ONLY valid JSON in this format:
{
  "summary": "2-3 sentence overview",
  "strengths": ["string"],
  "concerns": ["string"],
  "recommendations": ["string"],
  "overall_score": number 0-100,
  "score_breakdown": {
    "technical_fit": number 0-100,
    "culture_fit": number 0-100,
    "experience_match": number 0-100,
    "communication_skills": number 0-100
  },
  "confidence": number 0-100,
  "must_validate_points": ["string"],
  "next_stage_questions": ["string"]
}
Return ONLY the JSON, no explanation."""


JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class DeepSeekClient:
    """
    Thin chat-completions wrapper.

    One client per process; the model name is recorded next to every
    stored analysis so old results can be told apart after a model change.
    """

    def __init__(self):
        self.client = OpenAI(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            timeout=settings.deepseek_timeout_seconds,
        )
        self.model = settings.deepseek_model

    def complete(self, system_prompt: str, user_content: str, max_tokens: int = 1000) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            max_tokens=max_tokens,
            temperature=0.2,
        )
        return response.choices[0].message.content or ""

    @staticmethod
    def parse_json(text: str) -> dict:
        """Decode a JSON object reply, tolerating a markdown code fence around it."""
        payload = JSON_FENCE.sub("", text.strip())
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object from the model")
        return data

    def analyze_candidate(self, profile_text: str) -> dict:
        reply = self.complete(CANDIDATE_ANALYSIS_PROMPT, profile_text, max_tokens=1500)
        return self.parse_json(reply)

    def test_connection(self) -> bool:
        try:
            return "OK" in self.complete("Answer tersely.", "Reply with exactly: OK", max_tokens=5).upper()
        except Exception as e:
            logger.error(f"DeepSeek connection failed: {e}")
            return False


@lru_cache()
def get_deepseek_client() -> DeepSeekClient:
    return DeepSeekClient()
