"""Carte: account and authentication core of the menu administration backend."""

__version__ = "0.1.0"
