"""
Shared route dependencies.
"""

from fastapi import Request

from services.app_context import AppContext


def get_context(request: Request) -> AppContext:
    """Process-scoped services built at startup."""
    return request.app.state.context
