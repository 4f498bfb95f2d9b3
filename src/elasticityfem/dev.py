"""Development helpers."""
from __future__ import annotations

import functools
import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def timer(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log the wall-clock duration of ``func`` at DEBUG level.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> T:
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__qualname__} took {time.perf_counter() - start:.6f} s")

    return wrapper
