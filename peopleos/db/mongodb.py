"""
MongoDB connection for schema-flexible documents.

Kept in Mongo rather than in the relational database:
- interest form answers (one document per submission)
- uploaded resume text
- AI candidate analyses, versioned per candidate
- outbound event deliveries

Rows in the relational database keep only a document id or candidate id.
"""
import logging
from functools import lru_cache
from typing import Dict, List, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from peopleos.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

COLLECTIONS: Dict[str, str] = {
    "form_answers": "interest_form_answers",
    "resumes": "candidate_resumes",
    "analyses": "candidate_analyses",
    "deliveries": "outbound_deliveries",
}

# collection key -> [(keys, unique)]
INDEXES: Dict[str, List[Tuple[list, bool]]] = {
    "form_answers": [([("candidate_id", ASCENDING)], False)],
    "resumes": [([("candidate_id", ASCENDING), ("uploaded_at", DESCENDING)], False)],
    "analyses": [([("candidate_id", ASCENDING), ("version", DESCENDING)], True)],
    "deliveries": [([("event", ASCENDING), ("sent_at", DESCENDING)], False)],
}


@lru_cache()
def get_mongo_client() -> MongoClient:
    """One client per process; pymongo pools connections itself."""
    return MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)


def get_mongo_db() -> Database:
    return get_mongo_client()[settings.mongodb_db]


def get_collection(name: str) -> Collection:
    """Use the COLLECTIONS values for names."""
    return get_mongo_db()[name]


def test_mongo_connection() -> bool:
    try:
        get_mongo_client().admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        return False


def init_mongo_indexes() -> None:
    """Create the lookup indexes. Idempotent, called on startup."""
    db = get_mongo_db()
    for key, indexes in INDEXES.items():
        for keys, unique in indexes:
            db[COLLECTIONS[key]].create_index(keys, unique=unique)
    logger.info("MongoDB indexes created")
