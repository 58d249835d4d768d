"""
Unit Tests

Pure functions and settings, no database.
"""
