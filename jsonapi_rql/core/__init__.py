"""
Core application utilities for settings and logging.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with request-scoped context
"""
