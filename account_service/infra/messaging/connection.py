"""Self-healing broker connection for one direction (publish or subscribe).

``ConnectionManager`` owns a connect/retry loop and, once connected, a
monitor task probing the broker. When a probe fails the manager flips
``is_connected`` back to False, drops the dead broker and resumes the
infinite retry loop on its own; callers never have to call
``try_connect`` again.

Usage:
    manager = ConnectionManager("publish", connector)
    await manager.try_connect(max_retries=0, interval_ms=1500)
    assert manager.is_connected
    await manager.close()
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, Any

from account_service.core.exceptions import BrokerConnectionError
from account_service.infra.metrics.prometheus import (
    eventbus_connect_attempts_total,
    eventbus_connection_up,
)
from account_service.utils.retry import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    """Connection states of a ConnectionManager.

    Attributes:
        DISCONNECTED: No connection and no loop running.
        CONNECTING: First connect loop in progress.
        CONNECTED: Broker connected and monitored.
        RECONNECTING: Connection was lost; the loop is retrying.
        FAILED: A bounded connect loop exhausted its retries.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class ConnectionManager:
    """Connect/retry loop plus liveness monitor for one broker connection.

    Attributes:
        name: Direction label used in logs and metrics.
        attempts: Total connect attempts made, successful or not.
    """

    def __init__(
        self,
        name: str,
        connector: Callable[[], Awaitable[Any]],
        *,
        health_check_interval: float = 5.0,
        ping_timeout: float = 5.0,
    ) -> None:
        """Initialize the manager.

        Args:
            name: Direction label (``publish`` or ``subscribe``).
            connector: Coroutine factory returning a connected broker. The broker
                must offer ``ping(timeout)`` and ``close()``.
            health_check_interval: Seconds between liveness probes once connected.
            ping_timeout: Timeout of a single probe.
        """
        self.name = name
        self.attempts = 0
        self._connector = connector
        self._health_check_interval = health_check_interval
        self._ping_timeout = ping_timeout
        self._broker: Any | None = None
        self._state = ConnectionState.DISCONNECTED
        self._interval_ms = 1000
        self._connect_task: asyncio.Task[None] | None = None
        self._monitor_task: asyncio.Task[None] | None = None

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def broker(self) -> Any | None:
        """The connected broker, or None while disconnected."""
        return self._broker if self.is_connected else None

    async def try_connect(self, max_retries: int = 0, interval_ms: int = 1000) -> None:
        """Connect, retrying every ``interval_ms`` until it works.

        ``max_retries=0`` retries forever. Otherwise the first attempt is
        followed by at most ``max_retries`` retries. Concurrent callers share
        the loop already in flight.

        Raises:
            BrokerConnectionError: If a bounded retry budget is exhausted.
        """
        if self.is_connected:
            return

        if self._connect_task is None or self._connect_task.done():
            self._interval_ms = interval_ms
            max_attempts = 0 if max_retries == 0 else max_retries + 1
            self._state = ConnectionState.CONNECTING
            self._connect_task = asyncio.create_task(
                self._connect_loop(RetryStrategy.fixed(interval_ms / 1000, max_attempts)),
                name=f"eventbus-connect-{self.name}",
            )

        # Shielded so one cancelled caller does not abort the shared loop
        await asyncio.shield(self._connect_task)

    async def reconnect(self) -> None:
        """Drop the current connection and reconnect in the background."""
        await self.close()
        self._state = ConnectionState.RECONNECTING
        self._start_background_loop()

    async def close(self) -> None:
        """Stop the monitor and any connect loop, then close the broker.

        Idempotent and safe when never connected. Errors closing the broker
        propagate to the caller.
        """
        for task in (self._monitor_task, self._connect_task):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._monitor_task = None
        self._connect_task = None

        was_connected = self.is_connected
        self._state = ConnectionState.DISCONNECTED
        eventbus_connection_up.labels(direction=self.name).set(0)

        broker, self._broker = self._broker, None
        if broker is not None:
            await broker.close()
            if was_connected:
                logger.info("Broker connection closed", extra={"direction": self.name})

    # ─────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────
    def _start_background_loop(self) -> None:
        self._connect_task = asyncio.create_task(
            self._connect_loop(RetryStrategy.fixed(self._interval_ms / 1000)),
            name=f"eventbus-reconnect-{self.name}",
        )

    async def _connect_loop(self, strategy: RetryStrategy) -> None:
        failures = 0
        while True:
            self.attempts += 1
            try:
                broker = await self._connector()
            except Exception as exc:
                failures += 1
                eventbus_connect_attempts_total.labels(direction=self.name, result="failure").inc()
                logger.warning(
                    "Broker connect attempt failed",
                    extra={
                        "direction": self.name,
                        "attempt": failures,
                        "max_attempts": strategy.max_attempts,
                        "error": str(exc),
                    },
                )
                if strategy.is_exhausted(failures):
                    self._state = ConnectionState.FAILED
                    raise BrokerConnectionError(
                        detail=f"Could not connect {self.name} channel after {failures} attempts",
                        extra={"direction": self.name, "attempts": failures},
                    ) from exc
                await asyncio.sleep(strategy.calculate_delay(failures - 1))
                continue

            self._broker = broker
            self._state = ConnectionState.CONNECTED
            eventbus_connect_attempts_total.labels(direction=self.name, result="success").inc()
            eventbus_connection_up.labels(direction=self.name).set(1)
            logger.info(
                "Broker connection established",
                extra={"direction": self.name, "attempts": failures + 1},
            )
            self._monitor_task = asyncio.create_task(
                self._monitor(), name=f"eventbus-monitor-{self.name}"
            )
            return

    async def _monitor(self) -> None:
        while True:
            await asyncio.sleep(self._health_check_interval)
            broker = self._broker
            if broker is None:
                return
            try:
                alive = await broker.ping(timeout=self._ping_timeout)
            except Exception:
                logger.debug("Broker ping raised", exc_info=True, extra={"direction": self.name})
                alive = False
            if alive:
                continue

            logger.warning("Broker connection lost, reconnecting", extra={"direction": self.name})
            self._state = ConnectionState.RECONNECTING
            eventbus_connection_up.labels(direction=self.name).set(0)
            self._broker = None
            try:
                await broker.close()
            except Exception:
                logger.debug("Error closing dead broker", exc_info=True, extra={"direction": self.name})
            self._monitor_task = None
            self._start_background_loop()
            return
