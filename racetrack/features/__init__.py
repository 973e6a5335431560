"""
Feature modules for the race engine.

Each feature is a self-contained module with:
- models.py - SQLAlchemy models
- schemas.py - Pydantic schemas
- service.py - Business logic
- repository.py - Data access (optional)
- pure calculation modules (optional, no DB access)
"""
