"""
Session Migrator Store Module
Document Store contract and the in-memory binding
"""

from .base import DocumentStore, DocumentStoreError, EntityNotFoundError
from .memory import InMemoryDocumentStore
from .models import Document

__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "EntityNotFoundError",
    "InMemoryDocumentStore",
    "Document",
]
