"""
docschema Test Suite.

This package contains:
- unit/: Unit tests (engine, registry, storage providers, CLI)
"""
