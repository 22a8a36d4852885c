"""STORYLINE — Configuration Gate.

Holds the host's credentials and runs the one-time initialization
handshake. Dependent calls wait on it with a bounded, polling wait and
carry on in degraded mode if it never becomes ready.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set

from storyline.config import Configuration, Settings, settings as default_settings
from storyline.core.logging import get_logger

logger = get_logger("gate")

Initializer = Callable[[Configuration], Awaitable[None]]
ReadyListener = Callable[[], Awaitable[object]]


class SDKState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURING = "configuring"
    READY = "ready"
    FAILED = "failed"


class ConfigurationGate:
    """Write-once configuration plus the initialization state machine."""

    def __init__(self, initializer: Initializer, settings: Settings | None = None):
        self._initializer = initializer
        self.settings = settings or default_settings
        self._state = SDKState.UNCONFIGURED
        self._config: Optional[Configuration] = None
        self._ready_listeners: List[ReadyListener] = []
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SDKState:
        return self._state

    @property
    def config(self) -> Optional[Configuration]:
        return self._config

    @property
    def is_ready(self) -> bool:
        return self._state is SDKState.READY

    def add_ready_listener(self, listener: ReadyListener) -> None:
        """Run ``listener`` every time the gate transitions into READY."""
        self._ready_listeners.append(listener)

    def configure(self, config: Configuration) -> bool:
        """Store ``config`` and start initialization. First write wins.

        Must be called with a running event loop. Returns False when the
        call was ignored.
        """
        if self._state is not SDKState.UNCONFIGURED:
            logger.warning(
                "configure() ignored: SDK already configured",
                extra={"state": self._state.value},
            )
            return False

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.error("configure() needs a running event loop; ignored")
            return False

        self._config = config
        self._state = SDKState.CONFIGURING
        logger.info("🚀 Initializing SDK...", extra={"state": self._state.value})
        self._spawn(self._initialize(config))
        return True

    async def _initialize(self, config: Configuration) -> None:
        try:
            await self._initializer(config)
        except Exception as e:
            # A reset() during the handshake makes this attempt stale
            if self._config is config:
                self._state = SDKState.FAILED
                logger.error(
                    f"❌ SDK initialization failed: {e}",
                    extra={"state": self._state.value},
                )
            return

        if self._config is not config:
            logger.debug("Discarding initialization result after reset")
            return

        self._state = SDKState.READY
        logger.info("✅ SDK initialized", extra={"state": self._state.value})
        for listener in self._ready_listeners:
            self._spawn(listener())

    def _spawn(self, coro: Awaitable[object]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_ready(self, timeout: float | None = None) -> bool:
        """Poll until READY or ``timeout`` elapses. Never raises.

        Returns early with False once the gate has FAILED.
        """
        timeout = self.settings.ready_timeout if timeout is None else timeout
        interval = self.settings.ready_poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if self._state is SDKState.READY:
                return True
            if self._state is SDKState.FAILED:
                return False
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug(
                    f"Gate not ready after {timeout}s; continuing degraded",
                    extra={"state": self._state.value},
                )
                return False
            await asyncio.sleep(min(interval, remaining))

    async def wait_for_background(self) -> None:
        """Await the handshake and any ready listeners still running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def reset(self) -> None:
        """Return to UNCONFIGURED so configure() can run again."""
        self._config = None
        self._state = SDKState.UNCONFIGURED
        logger.info("Gate reset", extra={"state": self._state.value})
