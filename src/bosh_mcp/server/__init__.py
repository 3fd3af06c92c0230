"""MCP tool surface: policy, handlers and server wiring."""
