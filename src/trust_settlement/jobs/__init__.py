"""Periodically invoked jobs."""
