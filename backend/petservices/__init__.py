"""
PetServices Backend — Application Package
==========================================

What: Directory and marketplace API for pet services (vets, groomers,
      boarding, training, walking).
Who:  Imported by uvicorn (`petservices.main:app`), Alembic, pytest and the
      operator scripts.

Architecture Note:
    ┌─────────────────────────────────────┐
    │        Routes (Request Router)      │  ← HTTP concerns, auth gate
    ├─────────────────────────────────────┤
    │   Services (Auth / Catalog /        │  ← validation, ownership,
    │   Favorites / Upload Manager)       │    retry, cleanup
    ├─────────────────────────────────────┤
    │  Models & Schemas   │ Object Store  │  ← SQLAlchemy ORM + Pydantic,
    ├─────────────────────┤ (local/supa)  │    blob storage backends
    │  Database handle    │               │
    └─────────────────────┴───────────────┘
"""

__version__ = "1.0.0"
