"""
Visit storage backends.
"""
from .visit_store import InMemoryVisitStore, JsonFileVisitStore, VisitRepository, VisitStore

__all__ = [
    "InMemoryVisitStore",
    "JsonFileVisitStore",
    "VisitRepository",
    "VisitStore",
]
