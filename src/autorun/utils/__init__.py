"""Logging and file IO utilities."""
