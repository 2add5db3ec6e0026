"""Authentication module."""

from autoreject.auth.google import get_valid_access_token

__all__ = ["get_valid_access_token"]
