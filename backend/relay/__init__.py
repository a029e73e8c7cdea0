"""Chat relay service."""
