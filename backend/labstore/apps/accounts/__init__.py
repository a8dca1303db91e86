# backend/labstore/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Lab administrator accounts (the only users of the backend)
- Password login issuing bearer tokens
- Logout (token revocation) and credential changes

Services are imported explicitly (`from labstore.apps.accounts import
services`) because they depend on `labstore.security`, which itself
imports the models below.
"""

from . import models, schemas  # noqa: F401

__all__ = ["models", "schemas"]
