from __future__ import annotations

import logging
from typing import Any, MutableMapping

import structlog

from datamarket import __version__
from datamarket.config import settings

SERVICE_NAME = "datamarket"

# never emitted, whatever a caller passes as a log field
REDACTED_KEYS = frozenset(
    {"authorization", "headers", "request_headers", "client", "client_ip", "password", "password_hash", "token", "jwt_secret"}
)


def _level() -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def _add_service(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def _redact(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in REDACTED_KEYS.intersection(event_dict.keys()):
        del event_dict[key]
    return event_dict


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        _add_service,
        _redact,
    ]


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering both structlog events and plain ``logging`` records as one JSON line.

    Plain records go through the same chain, so a module logger called inside a request
    still carries the bound ``trace_id``.
    """
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *_shared_processors()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )


def init_logging() -> None:
    """Route stdlib logging and structlog through a single JSON handler on stderr.

    Request events carry: ts, level, service, version, trace_id, user_id_hash, method, endpoint, status, duration_ms.
    """
    root = logging.getLogger()
    root.setLevel(_level())
    # create_app may run more than once per process
    if not any(isinstance(h.formatter, structlog.stdlib.ProcessorFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(json_formatter())
        root.addHandler(handler)

    # access logs would carry client IPs
    logging.getLogger("uvicorn.access").disabled = True

    structlog.configure(
        processors=[*_shared_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(_level()),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = SERVICE_NAME) -> structlog.stdlib.BoundLogger:  # type: ignore[name-defined]
    return structlog.get_logger(name)
