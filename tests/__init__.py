"""
Tests package - Test suite for the shared secret operator.

Contains:
- unit/: Unit tests for individual components, run against mocked API clients
"""
