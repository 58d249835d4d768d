"""Hifz Tracker: memorization progress, mastery and statistics backend."""

__version__ = "0.1.0"
