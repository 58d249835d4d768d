"""
Integration Tests

Run services and routers against a file-backed SQLite database
(aiosqlite), one fresh database per test. No external services needed.
"""
