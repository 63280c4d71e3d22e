"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by domain module (auth, catalog, jobs, notifications,
wallet) and also include common reusable models such as the error envelope.
"""

from .common import MessageResponse, SuccessResponse  # noqa: F401
