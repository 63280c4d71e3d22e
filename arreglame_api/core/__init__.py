"""
Core application utilities.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with request context
- Password hashing and JWT helpers
- Error types carrying client-facing error codes
- FastAPI dependency helpers (DB session, current user, role guards)
"""
