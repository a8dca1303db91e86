"""
Inventory module.

Handles the component stock ledger: restock, resize, issue to students,
partial and full returns, plus the read-side reports the lab pages use.
"""

from . import models  # noqa: F401
