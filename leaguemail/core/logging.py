"""
Structured logging for LeagueMail.

Every entry carries the correlation id of the current invocation and, while a
selection session is open, the session and account it belongs to. Both live in
context variables, so tasks spawned by a session inherit them.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import IO, Any, Dict, Mapping, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

_correlation_id: ContextVar[Optional[str]] = ContextVar(
    "leaguemail_correlation_id", default=None
)
_session_context: ContextVar[Optional[Mapping[str, str]]] = ContextVar(
    "leaguemail_session_context", default=None
)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set the correlation id for the current context, generating one if omitted."""
    value = correlation_id or uuid.uuid4().hex[:8]
    _correlation_id.set(value)
    return value


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def bind_session_context(session_id: str, account_id: str) -> None:
    """Attach selection-session identifiers to every subsequent log entry."""
    _session_context.set({"session_id": session_id, "account_id": account_id})


def clear_session_context() -> None:
    _session_context.set(None)


def get_session_context() -> Dict[str, str]:
    return dict(_session_context.get() or {})


def add_selection_context(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Stamp an entry with the correlation id and the open selection session.

    Keys passed explicitly at the call site win over the context.
    """
    correlation_id = _correlation_id.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    for key, value in (_session_context.get() or {}).items():
        event_dict.setdefault(key, value)
    return event_dict


def setup_logging(
    debug: bool = False,
    rich_output: bool = True,
    stream: Optional[IO[str]] = None,
    cache_loggers: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        debug: Enable debug level logging
        rich_output: Rich console rendering on stderr; JSON lines on stdout otherwise
        stream: Write entries here instead of the default stream
        cache_loggers: Freeze module loggers on first use
    """
    level = logging.DEBUG if debug else logging.INFO

    processors = [
        add_selection_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if rich_output:
        output = stream or sys.stderr
        processors += [
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(
                colors=stream is None, exception_formatter=structlog.dev.rich_traceback
            ),
        ]
        handler: logging.Handler = RichHandler(console=Console(file=output), show_path=False)
    else:
        output = stream or sys.stdout
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
        handler = logging.StreamHandler(output)

    # httpx and asyncio log through the standard library; keep them quiet unless debugging
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[handler],
        force=True,
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=output),
        cache_logger_on_first_use=cache_loggers,
    )


def reset_logging() -> None:
    """Restore structlog defaults and drop any bound context."""
    structlog.reset_defaults()
    clear_session_context()
    _correlation_id.set(None)
