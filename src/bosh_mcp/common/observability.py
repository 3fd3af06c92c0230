"""Logging and tracing for the bosh-mcp server and CLI.

stdout carries the MCP stdio transport, so logs go to stderr and spans only
leave the process through an OTLP exporter.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from .. import __version__

REDACTED = "***"
SECRET_KEYS = frozenset({"client_secret", "confirm", "confirmation_token", "password", "authorization"})

_handler_installed = False
_tracing_enabled = False


def resolve_log_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        numeric = logging.getLevelName(level.strip().upper())
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential and token values passed as log context."""

    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(service_name: str, level: str | int | None = None) -> None:
    """Route structlog through stdlib logging as one JSON object per line on stderr."""

    global _handler_installed
    numeric_level = resolve_log_level(level)
    if not _handler_installed:
        logging.basicConfig(stream=sys.stderr, level=numeric_level, format="%(message)s")
        _handler_installed = True
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)


def parse_otlp_headers(headers: Optional[str]) -> dict[str, str]:
    """Parse ``key=value,key=value`` as used by ``OTEL_EXPORTER_OTLP_HEADERS``."""

    parsed: dict[str, str] = {}
    for item in (headers or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip() and value.strip():
            parsed[key.strip()] = value.strip()
    return parsed


def build_tracer_provider(
    service_name: str,
    endpoint: str,
    headers: Optional[str] = None,
    sampler_ratio: float = 1.0,
) -> TracerProvider:
    """A tracer provider that batches sampled spans to an OTLP/HTTP collector."""

    ratio = max(0.0, min(1.0, sampler_ratio))
    resource = Resource.create({"service.name": service_name, "service.version": __version__})
    provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(ratio))
    exporter = OTLPSpanExporter(endpoint=endpoint, headers=parse_otlp_headers(headers))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def configure_tracing(
    service_name: str,
    endpoint: Optional[str] = None,
    headers: Optional[str] = None,
    sampler_ratio: float = 1.0,
) -> bool:
    """Export ``director.*`` and httpx spans when an OTLP endpoint is configured.

    Without an endpoint the global no-op tracer stays in place and nothing is
    recorded. Returns whether tracing is enabled.
    """

    global _tracing_enabled
    if _tracing_enabled:
        return True
    if not endpoint:
        return False

    trace.set_tracer_provider(build_tracer_provider(service_name, endpoint, headers, sampler_ratio))
    HTTPXClientInstrumentor().instrument()
    _tracing_enabled = True
    structlog.get_logger("bosh_mcp.observability").info(
        "Tracing enabled", endpoint=endpoint, sampler_ratio=sampler_ratio
    )
    return True
