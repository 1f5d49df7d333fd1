"""Repositories running on connections resolved per execution context."""

from .record_repository import RecordStore

__all__ = ["RecordStore"]
