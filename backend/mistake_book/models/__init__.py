"""Database models."""

from mistake_book.models.mistake import MistakeRecord

__all__ = ["MistakeRecord"]
