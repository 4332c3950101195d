"""Shared helpers for virtual users and the ramp-up scheduler."""

from __future__ import annotations

import asyncio
import contextlib
import random
import string

from rampforge._internal.logging import get_logger

logger = get_logger("engine.user_utils")

_TAG_ALPHABET = string.ascii_lowercase + string.digits


async def wait_or_stop(stop_event: asyncio.Event, seconds: float) -> bool:
    """Sleep for *seconds*, returning early if *stop_event* is set.

    Args:
        stop_event: Event signalling run shutdown.
        seconds: Maximum time to wait. Non-positive values only yield to
            the event loop.

    Returns:
        True if the stop event is set when the wait ends.
    """
    if seconds <= 0:
        await asyncio.sleep(0)
        return stop_event.is_set()
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    return stop_event.is_set()


def user_rng(seed: int | None, user_id: int) -> random.Random:
    """Return the PRNG for one virtual user.

    With a run seed, each user gets a distinct but reproducible stream.
    """
    if seed is None:
        return random.Random()  # noqa: S311
    return random.Random(seed * 1_000_003 + user_id)  # noqa: S311


def make_user_tag(rng: random.Random, length: int = 6) -> str:
    """Return a short random tag used to build unique test credentials."""
    return "".join(rng.choices(_TAG_ALPHABET, k=length))


async def shutdown_tasks(
    tasks: list[asyncio.Task[None]],
    *,
    timeout: float,
    cancel_grace: float = 2.0,
) -> int:
    """Wait for *tasks* to finish, cancelling any still pending after *timeout*.

    Args:
        tasks: Tasks to wait for.
        timeout: Seconds to wait before cancelling.
        cancel_grace: Seconds to wait for cancelled tasks to unwind.

    Returns:
        Number of tasks that had to be cancelled.
    """
    if not tasks:
        return 0

    _done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning("Cancelling %d virtual users that overran the run bound", len(pending))
        await asyncio.wait(pending, timeout=cancel_grace)
    return len(pending)
