"""
Schemas module - Request/Response schemas for API endpoints.

Difference from models:
- Models: Persistent rows (SQLAlchemy)
- Schemas: API contract (what client sends/receives)

Everything lives in peopleos.schemas.schemas; routes import from there.
"""
