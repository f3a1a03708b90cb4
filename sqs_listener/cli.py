"""
Command-line interface for sqs-listener.

Provides commands to run the listener against a queue, run a single
poll/delete cycle, and inspect queue depth.

Usage:
    sqs-listener run orders --handler myapp.handlers:process     # Run until SIGTERM
    sqs-listener run-once orders --handler myapp.handlers:process
    sqs-listener depth orders                                    # Approximate count
"""

import asyncio
import importlib
import json
import signal
import sys

import click

from sqs_listener.config.settings import get_settings
from sqs_listener.listener import (
    ConfigurationError,
    QueueServiceError,
    SqsListener,
    load_listener_config,
)
from sqs_listener.listener.handler import MessageHandler
from sqs_listener.observability.logging import setup_logging
from sqs_listener.observability.metrics import get_metrics
from sqs_listener.queues import create_queue_service


def load_handler(path: str) -> MessageHandler:
    """
    Import a handler from a "package.module:function" path.

    Raises:
        click.BadParameter: If the path is malformed or does not resolve to a callable
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:function', got {path!r}", param_hint="--handler")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="--handler") from e

    target = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise click.BadParameter(f"{path} not found", param_hint="--handler")
    if not callable(target):
        raise click.BadParameter(f"{path} is not callable", param_hint="--handler")
    return target


def _build_listener(
    queue: str,
    handler: str,
    backend: str | None,
    overrides: dict,
) -> SqsListener:
    try:
        config = load_listener_config(**{k: v for k, v in overrides.items() if v is not None})
        queue_service = create_queue_service(backend)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    return SqsListener(queue, load_handler(handler), queue_service=queue_service, config=config)


def _engine_options(fn):
    """Options shared by commands that build a listener."""
    options = [
        click.option("--handler", "handler", required=True, help="Handler as module:function"),
        click.option("--backend", type=click.Choice(["sqs", "memory"]), default=None,
                     help="Queue backend (default from QUEUE_BACKEND)"),
        click.option("--parallelism", type=int, default=None, help="Concurrent handlers (1-10)"),
        click.option("--polling-interval", "polling_interval", type=int, default=None,
                     help="Seconds between poll cycles"),
        click.option("--visibility-timeout", "visibility_timeout", type=int, default=None,
                     help="Base visibility timeout in seconds"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """SQS Listener - concurrent at-least-once queue consumer."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    settings = get_settings()
    if settings.tracing_enabled:
        from sqs_listener.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
@click.argument("queue")
@_engine_options
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def run(
    queue: str,
    handler: str,
    backend: str | None,
    parallelism: int | None,
    polling_interval: int | None,
    visibility_timeout: int | None,
    metrics: bool,
    metrics_port: int | None,
) -> None:
    """Run the listener until SIGINT/SIGTERM.

    Example:
        sqs-listener run orders --handler myapp.handlers:process --parallelism 5
    """
    listener = _build_listener(
        queue,
        handler,
        backend,
        {
            "parallelism": parallelism,
            "polling_interval_seconds": polling_interval,
            "visibility_timeout_seconds": visibility_timeout,
        },
    )

    async def run_listener():
        if metrics:
            get_metrics().start_server(port=metrics_port)

        # Handle shutdown signals
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(listener.stop()))

        await listener.start()

    try:
        asyncio.run(run_listener())
    except QueueServiceError as e:
        click.echo(click.style(f"Listener failed to start: {e}", fg="red"), err=True)
        sys.exit(1)


@main.command("run-once")
@click.argument("queue")
@_engine_options
def run_once(
    queue: str,
    handler: str,
    backend: str | None,
    parallelism: int | None,
    polling_interval: int | None,
    visibility_timeout: int | None,
) -> None:
    """Run one poll cycle and one delete cycle, then print the counts."""
    listener = _build_listener(
        queue,
        handler,
        backend,
        {
            "parallelism": parallelism,
            "polling_interval_seconds": polling_interval,
            "visibility_timeout_seconds": visibility_timeout,
        },
    )

    try:
        stats = asyncio.run(listener.run_once())
    except QueueServiceError as e:
        click.echo(click.style(f"Cycle failed: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(json.dumps(stats, indent=2))


@main.command()
@click.argument("queue")
@click.option("--backend", type=click.Choice(["sqs", "memory"]), default=None,
              help="Queue backend (default from QUEUE_BACKEND)")
def depth(queue: str, backend: str | None) -> None:
    """Print the approximate number of visible messages."""
    service = create_queue_service(backend)

    async def check() -> int:
        handle = await service.lookup_queue(queue)
        return await service.approximate_count(handle)

    try:
        count = asyncio.run(check())
    except QueueServiceError as e:
        click.echo(click.style(f"Queue unavailable: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"{queue}: {count}")


if __name__ == "__main__":
    main()
