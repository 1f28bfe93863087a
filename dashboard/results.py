"""
Per-source fetch outcome: ``Ok(value)`` or ``Err(message)``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)


@dataclass
class Ok:
    value: Any


@dataclass
class Err:
    message: str


@dataclass
class Skipped:
    """Source not configured for this project."""
    reason: str = "not configured"


SourceResult = Union[Ok, Err, Skipped]


async def settle(source: str, fn: Callable, *args) -> SourceResult:
    """Run a blocking fetcher in a worker thread; any exception becomes Err."""
    try:
        return Ok(await asyncio.to_thread(fn, *args))
    except Exception as exc:
        logger.error("%s fetch failed: %s", source.upper(), exc)
        return Err(str(exc) or exc.__class__.__name__)


async def skipped(reason: str = "not configured") -> SourceResult:
    return Skipped(reason)
