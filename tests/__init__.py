#!/usr/bin/env python3
"""
Test suite for the scoring service.

    # Run all tests
    python -m pytest tests/ -v

    # Run only tests that do not touch a database engine
    python -m pytest tests/ -v -m "not db"

Tests marked ``db`` run against a throwaway SQLite file created from the ORM
metadata (see the fixtures in conftest.py); no external database is needed.
"""
