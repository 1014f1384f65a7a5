"""HTTP boundary for the auth token service."""
