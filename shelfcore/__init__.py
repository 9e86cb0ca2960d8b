"""Shared helpers for reposhelf: paths, configuration and logging."""
