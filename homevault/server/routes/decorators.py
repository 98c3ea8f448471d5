"""Decorators for route handlers."""


def public_route(handler):
    """Mark a route handler as reachable without a bearer token."""
    handler.is_public = True
    return handler
