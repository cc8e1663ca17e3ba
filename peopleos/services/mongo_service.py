"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. interest_form_answers - Raw answers for each interest form submission
2. candidate_resumes     - Text extracted from uploaded resumes
3. candidate_analyses    - AI analysis output, one document per version
4. outbound_deliveries   - Log of outbound event webhook deliveries

The relational side keeps only the document id (e.g. InterestFormResponse.document_id).
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.collection import Collection

from peopleos.db.mongodb import get_collection, COLLECTIONS


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# INTEREST FORM ANSWERS
# ============================================================

class FormAnswerService:
    """Stores the answers of one interest form submission per document."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["form_answers"])

    def insert(self, candidate_id: int, template_id: int, answers: List[Dict[str, Any]]) -> str:
        """
        Insert a submission.

        Args:
            candidate_id: Relational candidate id
            template_id: Interest form template id
            answers: [{"question_id", "question", "type", "answer"}, ...]

        Returns:
            MongoDB ObjectId as string (store this on InterestFormResponse)
        """
        doc = {
            "candidate_id": candidate_id,
            "template_id": template_id,
            "answers": answers,
            "submitted_at": _now(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_id(self, mongo_id: str) -> Optional[dict]:
        doc = self.collection.find_one({"_id": ObjectId(mongo_id)})
        return serialize_doc(doc)

    def get_by_candidate(self, candidate_id: int) -> List[dict]:
        """All submissions for a candidate, newest first."""
        cursor = self.collection.find(
            {"candidate_id": candidate_id},
            sort=[("submitted_at", DESCENDING)]
        )
        return serialize_docs(list(cursor))


# ============================================================
# CANDIDATE RESUMES
# ============================================================

class ResumeTextService:
    """Original resume text extracted from uploaded files."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["resumes"])

    def insert(self, candidate_id: int, resume_text: str, filename: str = None) -> str:
        doc = {
            "candidate_id": candidate_id,
            "resume_text": resume_text,
            "filename": filename,
            "uploaded_at": _now(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_candidate(self, candidate_id: int) -> Optional[dict]:
        """Latest resume for a candidate."""
        doc = self.collection.find_one(
            {"candidate_id": candidate_id},
            sort=[("uploaded_at", DESCENDING)]
        )
        return serialize_doc(doc)


# ============================================================
# CANDIDATE ANALYSES
# Versioned: re-running the analysis adds a new document
# ============================================================

class AnalysisDocumentService:
    """AI analysis output per candidate."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["analyses"])

    def insert(self, candidate_id: int, analysis: dict, model: str = None) -> int:
        """
        Store a new analysis version.

        Returns:
            The version number assigned (1 for the first analysis)
        """
        latest = self.get_latest(candidate_id)
        version = (latest["version"] + 1) if latest else 1
        self.collection.insert_one({
            "candidate_id": candidate_id,
            "version": version,
            "analysis": analysis,
            "model": model,
            "created_at": _now(),
        })
        return version

    def get_latest(self, candidate_id: int) -> Optional[dict]:
        doc = self.collection.find_one(
            {"candidate_id": candidate_id},
            sort=[("version", DESCENDING)]
        )
        return serialize_doc(doc)

    def list_versions(self, candidate_id: int) -> List[dict]:
        cursor = self.collection.find(
            {"candidate_id": candidate_id},
            sort=[("version", DESCENDING)]
        )
        return serialize_docs(list(cursor))


# ============================================================
# OUTBOUND DELIVERIES
# ============================================================

class DeliveryLogService:
    """Records each outbound event delivery attempt."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["deliveries"])

    def record(
        self,
        event: str,
        app_id: int,
        url: str,
        success: bool,
        status_code: int = None,
        error: str = None
    ) -> str:
        doc = {
            "event": event,
            "app_id": app_id,
            "url": url,
            "success": success,
            "status_code": status_code,
            "error": error,
            "sent_at": _now(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def recent(self, limit: int = 50) -> List[dict]:
        cursor = self.collection.find({}, sort=[("sent_at", DESCENDING)]).limit(limit)
        return serialize_docs(list(cursor))
