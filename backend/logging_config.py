import logging
import sys

import structlog
from structlog.contextvars import merge_contextvars

from config import APP_ENV, LOG_LEVEL


def _add_service_and_env(service_name: str):
    def processor(logger, method_name, event_dict):
        event_dict["service"] = service_name
        event_dict["env"] = APP_ENV
        return event_dict

    return processor


def configure_logging(service_name: str = "reptrack") -> None:
    log_level = getattr(logging, LOG_LEVEL, logging.INFO)
    is_dev = APP_ENV in {"local", "dev"}

    shared_processors = [
        merge_contextvars,
        _add_service_and_env(service_name),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = structlog.dev.ConsoleRenderer() if is_dev else structlog.processors.JSONRenderer()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
