"""Lambda handlers for the Form Submission API."""

from .api_handler import api_handler

__all__ = ["api_handler"]
