"""
Logging setup.

Every module logs through ``logging.getLogger(__name__)``; ``setup_logging``
routes those records through structlog so they come out as JSON lines, or as
a readable console stream at DEBUG. Context bound with ``operation_context``
(operation name, wallet) is attached to every record emitted inside it.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional, TextIO

import structlog

from .config import settings

REDACTED = "[redacted]"

_SECRET_FIELDS = frozenset({"keypair", "secret_key", "private_key", "mnemonic", "seed", "encryption_keys"})

_QUIET_LOGGERS = ("httpcore", "httpx")


def redact_secrets(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Mask key material that ends up in bound context or ``extra``."""
    for key in _SECRET_FIELDS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def _level(name: Optional[str]) -> int:
    value = logging.getLevelName((name or settings.log_level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    log_level: Optional[str] = None,
    *,
    json_output: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        log_level: Level name; defaults to ``settings.log_level``
        json_output: Force JSON (True) or console (False) rendering;
            by default only DEBUG uses the console renderer
        stream: Destination, stderr by default
    """
    level = _level(log_level)
    if json_output is None:
        json_output = level != logging.DEBUG

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    if json_output:
        pre_chain.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def operation_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to every log record emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield
