"""Logging context carried through contextvars.

The request middleware binds a request id, authentication binds the
learner, and the lesson endpoints bind the course and lesson they act on.
`learnmate.core.logging` merges whatever is bound into every event.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)
lesson_id_var: ContextVar[str | None] = ContextVar("lesson_id", default=None)

_OPTIONAL_VARS = {
    "user_id": user_id_var,
    "course_id": course_id_var,
    "lesson_id": lesson_id_var,
}


def _text(value: str | UUID | None) -> str | None:
    return str(value) if value is not None else None


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Bind the request id, generating one when the client sent none."""
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(_text(user_id))


def set_lesson_context(course_id: str | UUID | None, lesson_id: str | UUID | None) -> None:
    """Bind the course and lesson a request operates on."""
    course_id_var.set(_text(course_id))
    lesson_id_var.set(_text(lesson_id))


def get_context() -> dict[str, Any]:
    """Bound values only; unset ones are left out."""
    context: dict[str, Any] = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    for key, var in _OPTIONAL_VARS.items():
        value = var.get()
        if value:
            context[key] = value
    return context


def clear_context() -> None:
    request_id_var.set("")
    for var in _OPTIONAL_VARS.values():
        var.set(None)
