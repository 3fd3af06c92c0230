"""Confirmation tokens for destructive operations."""

from .tokens import TOKEN_PREFIX, PendingToken, TokenStore

__all__ = ["PendingToken", "TOKEN_PREFIX", "TokenStore"]
