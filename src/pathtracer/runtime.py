"""Taichi backend initialisation.

The renderer runs on Taichi's CPU backend. Its worker pool is created once by
ti.init() and its size is fixed for the lifetime of the process, so the thread
count has to be chosen here, before any field-declaring module is imported.

Example:
    >>> from pathtracer.runtime import init_taichi
    >>> init_taichi(threads=8)
    >>> from pathtracer.core.renderer import Renderer, RenderSettings
"""

import logging
import os

import taichi as ti

logger = logging.getLogger(__name__)

_initialized = False
_thread_count: int | None = None


def default_thread_count() -> int:
    """Number of worker threads to use when none is configured."""
    return os.cpu_count() or 1


def init_taichi(threads: int | None = None, debug: bool = False) -> None:
    """Initialise Taichi on the CPU backend.

    Calling this more than once has no effect: re-initialising Taichi would
    discard every field the renderer has already allocated.

    Args:
        threads: Size of the CPU worker pool. Defaults to the number of cores.
        debug: Enable Taichi's bounds-checking debug mode.

    Raises:
        ValueError: If threads is not positive.
    """
    global _initialized, _thread_count

    if threads is None:
        threads = default_thread_count()
    if threads < 1:
        raise ValueError(f"Thread count must be positive, got {threads}")

    if _initialized:
        logger.warning("Taichi is already initialised; ignoring init_taichi(threads=%d)", threads)
        return

    ti.init(arch=ti.cpu, cpu_max_num_threads=threads, debug=debug)
    _initialized = True
    _thread_count = threads
    logger.info("Taichi CPU backend ready with %d worker threads", threads)


def is_initialized() -> bool:
    """Check whether init_taichi() has run in this process."""
    return _initialized


def get_thread_count() -> int | None:
    """Size of the worker pool, or None before init_taichi()."""
    return _thread_count
