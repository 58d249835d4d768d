"""
Hifz Tracker Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Test environment and factory fixtures
    ├── unit/                # Pure engine functions and settings
    │   ├── test_verse_sets.py
    │   ├── test_weeks.py
    │   ├── test_mastery_reconciler.py
    │   ├── test_attendance.py
    │   ├── test_chapters.py
    │   ├── test_config.py
    │   └── test_dependencies.py
    └── integration/         # Services and routers against SQLite
        ├── test_session_resolver.py
        ├── test_mastery_service.py
        ├── test_statistics_service.py
        ├── test_activity_service.py
        ├── test_profile_service.py
        └── test_api.py

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run only unit tests
    pytest backend/tests/unit/ -v

    # Run only integration tests
    pytest -m integration -v
"""
