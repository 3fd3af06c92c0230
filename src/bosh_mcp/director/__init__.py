"""BOSH Director API client."""

from .client import DirectorClient, TaskFilter

__all__ = ["DirectorClient", "TaskFilter"]
