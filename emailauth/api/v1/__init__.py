"""
API v1 package.

Contains versioned API routes for the account recovery page.
"""

from emailauth.api.v1.routes import router

__all__ = ["router"]
