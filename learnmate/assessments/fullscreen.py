"""Fullscreen control for proctored assessments.

`ElementFullscreen` drives a DOM-like element/document pair, trying the
standard API first and then the vendor-prefixed variants.
"""

import inspect
from typing import Any, Protocol

import structlog


logger = structlog.get_logger(__name__)

REQUEST_METHODS = (
    "request_fullscreen",
    "webkit_request_fullscreen",
    "ms_request_fullscreen",
)
EXIT_METHODS = (
    "exit_fullscreen",
    "webkit_exit_fullscreen",
    "ms_exit_fullscreen",
)


class FullscreenController(Protocol):
    """Fullscreen surface the assessment session drives."""

    async def request(self) -> bool: ...

    async def exit(self) -> None: ...


async def _call_first(target: Any, names: tuple[str, ...]) -> str | None:
    """Call the first available method of `target`; return its name."""
    for name in names:
        method = getattr(target, name, None)
        if callable(method):
            result = method()
            if inspect.isawaitable(result):
                await result
            return name
    return None


class ElementFullscreen:
    """`FullscreenController` over an element and its document."""

    def __init__(self, element: Any, document: Any) -> None:
        self.element = element
        self.document = document

    async def request(self) -> bool:
        """Request fullscreen; False when denied or unsupported."""
        if self.element is None:
            return False
        try:
            used = await _call_first(self.element, REQUEST_METHODS)
        except Exception as e:
            logger.warning("fullscreen_request_failed", error=str(e))
            return False
        if used is None:
            logger.warning("fullscreen_unsupported")
            return False
        return True

    async def exit(self) -> None:
        try:
            await _call_first(self.document, EXIT_METHODS)
        except Exception as e:
            logger.warning("fullscreen_exit_failed", error=str(e))
