"""Search storage and buffered write strategies."""

from .repository import DocumentRow, SearchRepository
from .writestrategy import CommitError, CommitResult, create_write_strategy

__all__ = ["CommitError", "CommitResult", "DocumentRow", "SearchRepository", "create_write_strategy"]
