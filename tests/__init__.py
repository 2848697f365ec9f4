"""
Tests for the scheduling backend.

Run all tests: pytest
Service tests only: pytest tests/unit/
API tests only: pytest tests/test_api.py -v
"""
