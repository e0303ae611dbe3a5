"""Shared package for the TSSR workflow backend.

Code here has no Flask dependency and is imported by the backend services,
the HTTP layer and the tests:

- Database models (models.py) - SQLAlchemy declarative models
- Enums (enums.py) - survey statuses, transitions, access levels, role names
- Errors (errors.py) - the error taxonomy rendered by the API
- Validation utilities (validation.py, schemas.py) - input validation and
  the typed permission document
"""
