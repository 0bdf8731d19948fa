"""
Core primitives shared across the Carte backend.

Configuration, logging, the error taxonomy, the security policy (password
rules and hashing) and the token authority live here; services depend on
these instead of reading the environment or importing crypto libraries.
"""
