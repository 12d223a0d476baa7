#!/usr/bin/env python3
"""
Centralized Print Bridge Connection Management

This module owns the lifecycle of the connection to the local print bridge:
start-up with a bounded retry policy, cheap status reads, background status
polling, printer discovery and raw job dispatch.

The bridge is unreliable and asynchronous. start() returns before the
transport is actually open, so the transport flag is polled afterwards, and
the bridge library's own transport noise is kept out of application errors
by the NoiseGuardedBridge boundary.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, Optional, Sequence

from labelbridge import config
from .interfaces import (
    BridgeInterface,
    ConnectionStatus,
    ConnectionTimeout,
    PrintResult,
)
from .noise_filter import NoiseGuardedBridge, install_loop_handler

logger = logging.getLogger(__name__)


class Clock:
    """Time source for the retry policy, replaceable in tests"""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded polling of a readiness probe"""
    max_attempts: int = config.CONNECT_ATTEMPTS
    interval: float = config.CONNECT_INTERVAL
    initial_delay: float = config.CONNECT_GRACE
    deadline: float = config.CONNECT_DEADLINE

    async def wait_until(self, probe: Callable[[], bool], clock: Clock) -> bool:
        """
        Poll probe until it returns True

        Args:
            probe: Readiness check, called at most max_attempts times
            clock: Time source

        Returns:
            True if the probe succeeded, False when attempts ran out

        Raises:
            ConnectionTimeout: if the overall deadline passed first
        """
        started = clock.monotonic()
        await clock.sleep(self.initial_delay)

        for attempt in range(1, self.max_attempts + 1):
            if clock.monotonic() - started >= self.deadline:
                raise ConnectionTimeout(f"No connection after {self.deadline}s")
            if probe():
                logger.debug(f"Probe succeeded on attempt {attempt}/{self.max_attempts}")
                return True
            await clock.sleep(self.interval)

        return False


class PrinterConnectionManager:
    """
    Connection state machine for the print bridge

    Status starts as NOT_INSTALLED and is only changed by this object. One
    manager is built at startup and shared by everything that prints.
    """

    def __init__(self, bridge: BridgeInterface,
                 policy: Optional[RetryPolicy] = None,
                 clock: Optional[Clock] = None,
                 poll_interval: float = config.POLL_INTERVAL,
                 preferred_printers: Sequence[str] = tuple(config.PREFERRED_PRINTER_TOKENS),
                 download_url: str = config.BRIDGE_DOWNLOAD_URL):
        """
        Args:
            bridge: Print bridge adapter (UnavailableBridge if not installed)
            policy: Start-up retry policy
            clock: Time source for the retry policy
            poll_interval: Seconds between background status reads
            preferred_printers: Name fragments used to auto-select a printer
            download_url: Where to get the bridge client
        """
        if not isinstance(bridge, NoiseGuardedBridge):
            bridge = NoiseGuardedBridge(bridge)
        self.bridge = bridge
        self.policy = policy or RetryPolicy()
        self.clock = clock or Clock()
        self.poll_interval = poll_interval
        self.preferred_printers = [token.lower() for token in preferred_printers]
        self.download_url = download_url

        self._status = ConnectionStatus.NOT_INSTALLED
        self.printers: List[str] = []
        self.selected_printer: Optional[str] = None
        self._init_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @status.setter
    def status(self, value: ConnectionStatus) -> None:
        if value != self._status:
            logger.info(f"Print bridge status: {self._status.value} -> {value.value}")
        self._status = value

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    def _guard_loop(self) -> None:
        install_loop_handler(asyncio.get_running_loop())

    async def initialize(self) -> ConnectionStatus:
        """
        Start the bridge and wait for its transport to open

        Concurrent callers share a single in-flight attempt and all get its
        result. Once that attempt finishes, the next call starts a new one.

        Returns:
            CONNECTED, DISCONNECTED (timed out) or NOT_INSTALLED
        """
        self._guard_loop()

        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._initialize())
        # Shielded so one impatient caller cannot cancel the shared attempt
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> ConnectionStatus:
        if not self.bridge.available:
            logger.warning("Print bridge not installed")
            self.status = ConnectionStatus.NOT_INSTALLED
            return self.status

        self.status = ConnectionStatus.CHECKING
        try:
            status = await asyncio.wait_for(self._connect(), timeout=self.policy.deadline)
        except asyncio.TimeoutError:
            logger.warning(f"Print bridge did not connect within {self.policy.deadline}s")
            status = ConnectionStatus.DISCONNECTED
        except Exception as e:
            logger.error(f"Print bridge start-up failed: {e}")
            status = ConnectionStatus.NOT_INSTALLED

        self.status = status
        return status

    async def _connect(self) -> ConnectionStatus:
        # Let the bridge keep reconnecting on its own after we stop polling
        self.bridge.auto_reconnect = True
        await self.bridge.start()

        try:
            opened = await self.policy.wait_until(lambda: self.bridge.transport_open, self.clock)
        except ConnectionTimeout as e:
            logger.warning(f"Print bridge connection timed out: {e}")
            return ConnectionStatus.DISCONNECTED

        if opened:
            logger.info("✅ Print bridge connected")
            return ConnectionStatus.CONNECTED

        logger.warning(f"Print bridge still closed after {self.policy.max_attempts} checks "
                       f"(auto-reconnect continues in background)")
        return ConnectionStatus.DISCONNECTED

    def get_status(self) -> ConnectionStatus:
        """Read the current transport state without connecting"""
        if not self.bridge.available:
            return ConnectionStatus.NOT_INSTALLED
        try:
            if self.bridge.transport_open:
                return ConnectionStatus.CONNECTED
            return ConnectionStatus.DISCONNECTED
        except Exception as e:
            logger.debug(f"Print bridge status read failed: {e}")
            return ConnectionStatus.NOT_INSTALLED

    def poll_once(self) -> ConnectionStatus:
        """Refresh the shared status from the transport flag"""
        try:
            status = self.get_status()
        except Exception:
            status = ConnectionStatus.NOT_INSTALLED
        self.status = status
        return status

    async def _poll_loop(self) -> None:
        while True:
            await self.clock.sleep(self.poll_interval)
            self.poll_once()

    def start_polling(self) -> None:
        """Refresh status every poll_interval seconds in the background"""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._guard_loop()
        self._poll_task = asyncio.ensure_future(self._poll_loop())
        logger.debug(f"Print bridge status polling every {self.poll_interval}s")

    async def stop_polling(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def list_printers(self) -> List[str]:
        """
        List printers installed on the bridge host

        Returns:
            Printer names, or an empty list on any failure
        """
        if not self.bridge.available:
            return []
        try:
            if not self.bridge.transport_open:
                await self.initialize()
            printers = await self.bridge.get_printers()
        except Exception as e:
            logger.error(f"Could not list printers: {e}")
            return []

        self.printers = list(printers)
        return list(self.printers)

    def select_printer(self, printer_name: Optional[str]) -> None:
        self.selected_printer = printer_name or None
        logger.info(f"Selected printer: {self.selected_printer or 'default'}")

    def _auto_select(self) -> None:
        if self.selected_printer:
            return
        for name in self.printers:
            if any(token in name.lower() for token in self.preferred_printers):
                self.select_printer(name)
                return

    async def refresh(self) -> ConnectionStatus:
        """Manual refresh: reconnect, reload printers and pick a label printer"""
        try:
            status = await self.initialize()
            if status == ConnectionStatus.CONNECTED:
                await self.list_printers()
                self._auto_select()
        except Exception as e:
            logger.error(f"Print bridge refresh failed: {e}")
            self.status = status = ConnectionStatus.NOT_INSTALLED
        return status

    async def send(self, commands: str, printer_name: Optional[str] = None) -> PrintResult:
        """
        Send raw printer commands through the bridge

        Args:
            commands: TSPL command text
            printer_name: Target printer (bridge default printer if None)

        Returns:
            PrintResult; never raises
        """
        if not self.bridge.available:
            return PrintResult(
                success=False,
                message="Print bridge not available. Please install the client app.",
            )

        try:
            if self.get_status() != ConnectionStatus.CONNECTED:
                status = await self.initialize()
                if status != ConnectionStatus.CONNECTED:
                    return PrintResult(
                        success=False,
                        message="Printer service not connected. Please ensure the print bridge is running.",
                    )

            job = self.bridge.create_job(printer_name)
            job.commands = commands
            await job.dispatch()

            logger.info(f"Print job sent to {printer_name or 'default printer'} "
                        f"({len(commands)} bytes)")
            return PrintResult(success=True, message="Print job sent successfully!")

        except Exception as e:
            logger.error(f"Print failed: {e}")
            return PrintResult(success=False, message=f"Print failed: {str(e) or 'Unknown error'}")

    def snapshot(self) -> Dict[str, Any]:
        """Current state for status displays"""
        return {
            'status': self.status,
            'printers': list(self.printers),
            'selected_printer': self.selected_printer,
            'download_url': self.download_url,
            'bridge': self.bridge.describe(),
        }

    async def close(self) -> None:
        await self.stop_polling()
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        try:
            await self.bridge.close()
        except Exception as e:
            logger.warning(f"Error closing print bridge: {e}")
        logger.info("Print bridge connection manager closed")
