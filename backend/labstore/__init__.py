# backend/labstore/__init__.py
"""
Import ORM models from each app so that Alembic and
Base.metadata.create_all() see all tables.

The actual model classes are kept in labstore/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models      # admins
from .apps.inventory import models as inventory_models    # components / students / issues
from .apps.audit import models as audit_models            # audit trail

__all__ = [
    "accounts_models",
    "inventory_models",
    "audit_models",
]
