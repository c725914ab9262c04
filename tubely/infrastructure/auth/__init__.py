"""
Authentication helpers.

Turns an Authorization header into an authenticated user ID.
"""

from .tokens import create_access_token, get_bearer_token, validate_jwt

__all__ = ["create_access_token", "get_bearer_token", "validate_jwt"]
