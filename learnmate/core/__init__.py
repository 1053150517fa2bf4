# Core infrastructure
from learnmate.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_lesson_context,
    set_request_id,
    set_user_id,
)
from learnmate.core.logging import configure_structlog, get_logger
from learnmate.core.middleware import RequestContextMiddleware
from learnmate.core.timers import AsyncioTimers, TimerHandle, Timers


__all__ = [
    "AsyncioTimers",
    "RequestContextMiddleware",
    "TimerHandle",
    "Timers",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_lesson_context",
    "set_request_id",
    "set_user_id",
]
