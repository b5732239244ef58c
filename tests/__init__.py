"""
datatable test suite.

This package contains:
- unit/: Unit tests for pure components and the in-memory store
- integration/: SQLite-backed stores, the bitemporal engine on both
  backends, and the command-line tool
"""
