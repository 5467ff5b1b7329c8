"""
ClipSync Backend — Application Package Initializer
===================================================

What: Marks the `clipsync` directory as a Python package.
Why:  Enables module imports like `from clipsync.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    This backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │        Routes (API Layer)           │  ← HTTP concerns, auth dependency
    ├─────────────────────────────────────┤
    │   Services (Sync / Auth / Stats)    │  ← Reconciliation, credential rules
    ├─────────────────────────────────────┤
    │     Models & Schemas (Data)         │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │     Database (Persistence)          │  ← Injected async engine + sessions
    └─────────────────────────────────────┘

    Services never see headers or status codes; routes never build queries.
"""

__version__ = "1.0.0"
