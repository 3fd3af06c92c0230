"""Command-line entrypoint for the BOSH MCP server (stdio transport)."""

from __future__ import annotations

import argparse

from .. import __version__
from ..common.observability import configure_logging, configure_tracing
from ..common.settings import ServerSettings
from .app import build_server
from .registry import ToolRegistry


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve BOSH Director tools over MCP stdio")
    parser.add_argument("--version", action="version", version=f"bosh-mcp-server {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    parse_args(argv)
    settings = ServerSettings()
    configure_logging("bosh_mcp.server", settings.log_level)
    configure_tracing(
        service_name="bosh_mcp.server",
        endpoint=settings.otel_exporter_endpoint,
        headers=settings.otel_exporter_headers,
        sampler_ratio=settings.otel_sampler_ratio,
    )
    registry = ToolRegistry.from_settings(settings)
    server = build_server(registry, token_cleanup_interval=settings.token_cleanup_interval_seconds)
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
