"""
Persistence adapters.

Each module implements the user/account store contracts from
``carte.domain.interfaces``: SQL for deployments, in-memory for tests.
"""
