"""Observability utilities: logging setup and OpenTelemetry spans.

- configure_logging: one stdout handler with ISO timestamps; quiets chatty libraries.
- span: context manager wrapping an OpenTelemetry span. Without a configured tracer
  provider the API hands out non-recording spans, so this costs nothing by default.
  A console exporter is installed only when settings.OTEL_CONSOLE_EXPORT is set.
"""
import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from readerrag.config import settings

_otel_inited: bool = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with a single stdout handler.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _init_otel() -> None:
    """Install a console-exporting tracer provider once, if enabled."""
    global _otel_inited
    if _otel_inited:
        return
    _otel_inited = True
    if not settings.OTEL_CONSOLE_EXPORT:
        return
    tp = TracerProvider()
    tp.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tp)


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
    """Run the enclosed block inside an OpenTelemetry span.

    Args:
        name: Span name.
        attributes: Optional attributes; None values are dropped.

    Yields:
        The active span.
    """
    _init_otel()
    tracer = trace.get_tracer("readerrag")
    attrs = {k: v for k, v in (attributes or {}).items() if v is not None}
    with tracer.start_as_current_span(name, attributes=attrs) as current:
        yield current
