"""Mistake book service: tracks missed quiz questions until they are mastered."""

__version__ = "1.0.0"
