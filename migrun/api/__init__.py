"""HTTP API for driving migration operations."""
