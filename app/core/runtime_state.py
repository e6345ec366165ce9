"""Process-wide flags set by the lifespan hook and read by ``/health``."""
from __future__ import annotations

_scheduler_active = False


def set_scheduler_active(active: bool) -> None:
    """Record whether the in-process payment reminder scheduler is running."""
    global _scheduler_active
    _scheduler_active = active


def is_scheduler_active() -> bool:
    return _scheduler_active
