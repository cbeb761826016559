"""Polling primitives for container and application readiness."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from svcadm.errors import EngineError, ReadinessTimeout

if TYPE_CHECKING:
    from svcadm.engine.client import ContainerEngine

logger = logging.getLogger(__name__)


async def poll_until(
    check: Callable[[], Awaitable[Any]],
    description: str,
    interval: float,
    max_tries: int,
    sleep_first: bool = False,
) -> Any:
    """Await ``check`` until it returns a truthy value.

    Engine errors raised by ``check`` count as a failed attempt. Raises
    ReadinessTimeout once ``max_tries`` attempts have failed.
    """
    for attempt in range(1, max_tries + 1):
        if sleep_first or attempt > 1:
            await asyncio.sleep(interval)
        try:
            result = await check()
        except EngineError as e:
            logger.debug(f"{description}: check failed ({e})")
            result = None
        if result:
            logger.info(f"{description} is ready")
            return result
        logger.debug(
            f"{description} is not ready, retrying in {interval} seconds "
            f"({attempt}/{max_tries})"
        )
    raise ReadinessTimeout(f"timed out waiting for {description} after {max_tries} tries")


async def wait_for_container(
    engine: "ContainerEngine",
    name: str,
    interval: float,
    max_tries: int,
) -> None:
    """Wait until the container reports the ``running`` state."""

    async def is_running() -> bool:
        return await engine.status(name) == "running"

    await poll_until(
        is_running,
        f"container {name}",
        interval,
        max_tries,
        sleep_first=True,
    )
