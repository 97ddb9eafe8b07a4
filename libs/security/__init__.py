"""Access-token helpers shared by the services."""

from .jwt import create_access_token, verify_and_decode

__all__ = ["create_access_token", "verify_and_decode"]
