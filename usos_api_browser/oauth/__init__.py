"""OAuth 1.0a signing and three-legged token acquisition."""

from .signer import build_signed_url, percent_encode

__all__ = ["build_signed_url", "percent_encode"]
