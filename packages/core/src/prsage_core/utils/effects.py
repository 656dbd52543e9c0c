"""Best-effort side effects.

Reactions and similar acknowledgements must never fail the operation they
decorate. Instead of an empty ``except`` block, best_effort() returns a
NonFatal record so the caller (and its tests) can see what was attempted and
how it ended, and the failure is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NonFatal:
    action: str
    ok: bool
    error: str | None = None


def best_effort(action: str, func: Callable[..., Any], *args, **kwargs) -> NonFatal:
    try:
        func(*args, **kwargs)
    except Exception as e:
        logger.warning("Non-fatal %s failed: %s", action, e)
        return NonFatal(action=action, ok=False, error=str(e))
    return NonFatal(action=action, ok=True)
