"""
Middleware Package
==================

FastAPI middleware for security headers and HTTPS enforcement.
"""

from .security import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
