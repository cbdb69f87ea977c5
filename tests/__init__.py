"""
Tests package - Test suite for the Kyverno webhook manager.

Contains:
- unit/: Unit tests run against an in-memory cluster client
"""
