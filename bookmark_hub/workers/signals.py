"""
Wake-up signals between workers.

A WakeupSignal is a single-slot, latest-wins broadcast: notify() bumps a
version counter and wakes every waiter; a waiter returns as soon as the version
differs from the one it last saw, so a notification sent while the waiter was
busy draining is not lost, but ten notifications collapse into one wake-up.

Signals only make workers react sooner. Every wait has a timeout (the idle
interval) and workers poll the database when it expires, so a lost
notification delays work, it never loses it.

Across processes the same signal is carried over Redis pub/sub: publish_wakeup()
on the producer side, bridge_redis_channel() on the daemon side.
"""

import asyncio
import logging
from typing import Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

BRIDGE_RECONNECT_SECONDS = 5


class WakeupSignal:

    def __init__(self, name: str):
        self.name = name
        self._version = 0
        self._condition: Optional[asyncio.Condition] = None

    @property
    def version(self) -> int:
        return self._version

    @property
    def condition(self) -> asyncio.Condition:
        # Created lazily so the signal binds to the loop that first uses it
        if self._condition is None:
            self._condition = asyncio.Condition()
        return self._condition

    async def notify(self) -> None:
        async with self.condition:
            self._version += 1
            self.condition.notify_all()

    async def wait(self, seen_version: int, timeout: float) -> int:
        """
        Wait until notified after `seen_version`, or until `timeout` seconds pass.

        Returns:
            The current version, to pass as seen_version next time
        """
        async with self.condition:
            try:
                await asyncio.wait_for(
                    self.condition.wait_for(lambda: self._version != seen_version),
                    timeout,
                )
            except asyncio.TimeoutError:
                pass
            return self._version


async def publish_wakeup(redis: Redis, channel: str) -> None:
    """Publish a wake-up on Redis; failures are logged and swallowed."""
    try:
        await redis.publish(channel, "wakeup")
    except Exception as e:
        logger.warning(f"Could not publish wake-up on {channel}: {e}")


async def bridge_redis_channel(redis: Redis, channel: str, signal: WakeupSignal) -> None:
    """
    Forward every Redis message on `channel` to a local signal.

    Runs until cancelled; resubscribes after connection errors.
    """
    while True:
        pubsub = redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            logger.info(f"Listening for wake-ups on {channel}")
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    await signal.notify()
        except Exception as e:
            logger.warning(
                f"Wake-up channel {channel} failed, retrying in {BRIDGE_RECONNECT_SECONDS}s: {e}"
            )
            await asyncio.sleep(BRIDGE_RECONNECT_SECONDS)
        finally:
            await pubsub.aclose()
