# storage/__init__.py
from readgate.storage.repository import Repository
from readgate.storage.models import (
    ReadingProgress, StoredAttempt, StoredBook, StoredChunk, StoredQuiz, StoredSection,
)

__all__ = [
    "Repository",
    "ReadingProgress", "StoredAttempt", "StoredBook",
    "StoredChunk", "StoredQuiz", "StoredSection",
]
