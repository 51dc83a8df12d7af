"""structlog + stdlib logging setup shared by the API, CLI and tests.

Both ``structlog.get_logger()`` and plain ``logging.getLogger(__name__)``
records end up in the same handler, rendered either as JSON lines
(production) or with the coloured console renderer (local runs).
"""

import logging
import sys

import structlog


def configure_logging(json_output: bool = True, log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one formatter.

    Args:
        json_output: Render JSON lines when ``True``, console output otherwise.
        log_level: Root level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # The CLI prints results on stdout, so log records go to stderr.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper()))

    # SQL echo is opt-in through the engine, keep the driver quiet otherwise.
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
