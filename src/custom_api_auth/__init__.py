"""Encrypted cookie auth tokens with replay-protected server-side sessions."""

__version__ = "0.1.0"
