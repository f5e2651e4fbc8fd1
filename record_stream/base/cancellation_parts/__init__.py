"""Cancellation parts (token, error, internal state)."""
