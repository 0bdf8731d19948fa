"""
High-level use cases for the Carte API.

Delivery code (routes, CLI scripts) should call these services instead of
manipulating stores or tokens directly.
"""

from carte.services.account_service import AccountService

__all__ = ["AccountService"]
