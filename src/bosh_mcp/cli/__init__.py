"""Command-line utilities for bosh-mcp."""
