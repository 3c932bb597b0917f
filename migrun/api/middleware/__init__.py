"""API middleware."""

from migrun.api.middleware.context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
