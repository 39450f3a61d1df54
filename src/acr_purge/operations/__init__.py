"""Purge, sweep and archive operations."""
