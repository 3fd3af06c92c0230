"""Shared models, settings and observability helpers."""
