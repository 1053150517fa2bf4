"""Liveness and readiness checks."""

from learnmate.health.router import router


__all__ = ["router"]
