"""Utility functions for the Form Submission API."""

from .body_limit import BodySizeLimitMiddleware
from .rate_limit import RateLimiter

__all__ = ["BodySizeLimitMiddleware", "RateLimiter"]
