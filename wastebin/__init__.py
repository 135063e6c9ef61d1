"""
Wastebin: a small pastebin service.

    routes/      HTTP handlers (HTML views, raw text, admin, health)
    services/    paste store, schema migrator, submission rules
    models/      SQLAlchemy table definition
    schemas/     Pydantic response models
    paste.py     the Paste domain object
"""

__version__ = "1.0.0"
