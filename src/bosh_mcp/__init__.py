"""MCP server exposing the BOSH Director API behind confirmation tokens."""

__version__ = "0.1.0"
