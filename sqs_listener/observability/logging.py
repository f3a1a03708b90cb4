"""
Structured logging for the listener.

structlog events and plain stdlib records (botocore, the SQS adapter,
prometheus_client) are rendered by one ``ProcessorFormatter``, so a poll
cycle's logs and the AWS SDK's retries land in the same stream with the
same fields: level, logger, timestamp, service and, inside a traced cycle,
trace_id/span_id.

Production renders one JSON object per line; development uses the coloured
console renderer.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from sqs_listener.config.settings import get_settings
from sqs_listener.observability.tracing import add_trace_context

# Chatty at INFO: every SQS request and connection-pool event
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "asyncio")


def _service_adder(service_name: str) -> Processor:
    def add_service(logger: Any, method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service


def _pre_chain(service_name: str) -> list[Processor]:
    """Processors applied to both structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_adder(service_name),
        add_trace_context,
    ]


def build_formatter(json_logs: bool, service_name: str) -> structlog.stdlib.ProcessorFormatter:
    """
    Build the stdlib formatter that renders every record.

    Args:
        json_logs: Render JSON lines instead of console output
        service_name: Value of the ``service`` field on every line
    """
    if json_logs:
        renderers: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(service_name),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (default from settings.log_level)
        json_logs: Force JSON output (default: only in production)

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Poll cycle finished", queue="orders", received=10)
    """
    settings = get_settings()
    level = level or settings.log_level
    if json_logs is None:
        json_logs = settings.is_production

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_pre_chain(settings.otel_service_name),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(json_logs, settings.otel_service_name))
    logging.basicConfig(handlers=[handler], level=getattr(logging, level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
