"""Batching, correlation and archiving core."""
