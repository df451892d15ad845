"""
Middleware package for the listing governance API.
"""

from .validation import ValidationMiddleware

__all__ = ["ValidationMiddleware"]
