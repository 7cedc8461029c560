"""Persistence of reconciliation results."""

from services.persistence.match_store import InMemoryMatchStore, JsonFileMatchStore, create_match_store

__all__ = [
    "InMemoryMatchStore",
    "JsonFileMatchStore",
    "create_match_store",
]
