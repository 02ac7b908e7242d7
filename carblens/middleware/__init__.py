"""Middleware package for the CarbLens API."""

from carblens.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware

__all__ = ["CorrelationIdMiddleware", "CORRELATION_ID_HEADER"]
