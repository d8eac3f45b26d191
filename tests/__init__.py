"""
Test suite for Catalog Asset Sync.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run API tests: pytest tests/test_api_sessions.py -v
"""
