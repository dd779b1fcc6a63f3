"""
Integration tests package.

These tests run against a real PostgreSQL with the vector extension
available, reached through DATABASE_URL. The schema is created from the
models for every test and dropped afterwards.

To run integration tests:
    pytest tests/integration/ -v --run-integration

To skip integration tests (default):
    pytest tests/ -v
"""
