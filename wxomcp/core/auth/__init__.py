"""Authentication for the Orchestrate API."""

from wxomcp.core.auth.credentials import CachedToken, CredentialCache

__all__ = ["CachedToken", "CredentialCache"]
