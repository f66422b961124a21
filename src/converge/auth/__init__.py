"""Credential sources."""

from converge.auth.token_exchange import TOKEN_EXCHANGE_PATH, TokenExchangeSource

__all__ = ["TOKEN_EXCHANGE_PATH", "TokenExchangeSource"]
