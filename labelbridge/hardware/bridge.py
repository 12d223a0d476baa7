"""
Print bridge adapters

NetworkBridge talks to the locally running print bridge over TCP and sends
raw TSPL to the printers it knows about. MockBridge records jobs in memory
for testing without hardware. UnavailableBridge stands in when no bridge
client can be loaded, so callers can tell "not installed" apart from
"installed but disconnected".
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from labelbridge import config
from .interfaces import BridgeInterface, BridgeJob, BridgeUnavailable, DispatchFailure
from .tspl_encoder import encode_commands

logger = logging.getLogger(__name__)
transport_logger = logging.getLogger("labelbridge.bridge.transport")

CONNECT_TIMEOUT = 5.0
SEND_TIMEOUT = 10.0
RECONNECT_DELAY = 2.0


class NetworkPrintJob(BridgeJob):
    """Raw TSPL job sent over a fresh socket to the target printer"""

    def __init__(self, bridge: "NetworkBridge", printer_name: Optional[str] = None):
        super().__init__(printer_name)
        self.bridge = bridge

    async def dispatch(self) -> None:
        host, port = self.bridge.resolve_printer(self.printer_name)
        payload = encode_commands(self.commands)
        writer = None
        try:
            # Fresh connection for each print job
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=CONNECT_TIMEOUT
            )
            writer.write(payload)
            await asyncio.wait_for(writer.drain(), timeout=SEND_TIMEOUT)
            logger.info(f"Sent {len(payload)} bytes to printer at {host}:{port}")
        except (asyncio.TimeoutError, OSError) as e:
            raise DispatchFailure(f"Printer {host}:{port} unreachable: {e}") from e
        finally:
            if writer is not None:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass


class NetworkBridge(BridgeInterface):
    """TCP client for the local print bridge"""

    def __init__(self, host: str = config.BRIDGE_HOST, port: int = config.BRIDGE_PORT,
                 printers: Optional[Dict[str, Tuple[str, int]]] = None):
        """
        Initialize the bridge client

        Args:
            host: Bridge host (normally localhost)
            port: Bridge control port
            printers: Installed printers, {name: (host, port)}; first is default
        """
        self.host = host
        self.port = port
        self.printers = printers if printers is not None else config.parse_printers(config.PRINTERS)
        self.auto_reconnect = False
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None

        logger.info(f"Print bridge configured: {host}:{port}, "
                    f"{len(self.printers)} printer(s)")

    @property
    def transport_open(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def start(self) -> None:
        """Begin connecting; the transport opens in the background"""
        if self.transport_open or (self._connect_task and not self._connect_task.done()):
            return
        self._connect_task = asyncio.ensure_future(self._connect_loop())

    async def _connect_loop(self) -> None:
        while True:
            try:
                self._reader, self._writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port), timeout=CONNECT_TIMEOUT
                )
                transport_logger.info(f"Bridge transport open at {self.host}:{self.port}")
                self._watch_task = asyncio.ensure_future(self._watch())
                return
            except (asyncio.TimeoutError, OSError) as e:
                transport_logger.warning(f"Bridge connect to {self.host}:{self.port} failed: {e}")
                if not self.auto_reconnect:
                    return
                await asyncio.sleep(RECONNECT_DELAY)

    async def _watch(self) -> None:
        """Detect the bridge closing the control connection"""
        try:
            while self._reader is not None and await self._reader.read(1024):
                pass
        except OSError as e:
            transport_logger.warning(f"Bridge connection to {self.host}:{self.port} lost: {e}")

        transport_logger.info("Bridge transport closed")
        if self._writer is not None:
            self._writer.close()
        self._reader = self._writer = None
        if self.auto_reconnect:
            self._connect_task = asyncio.ensure_future(self._connect_loop())

    async def get_printers(self) -> List[str]:
        if not self.transport_open:
            raise BridgeUnavailable("Bridge transport is not open")
        return list(self.printers)

    def resolve_printer(self, printer_name: Optional[str] = None) -> Tuple[str, int]:
        """Address of the named printer, or of the default printer"""
        if not self.printers:
            raise DispatchFailure("No printers configured")
        if printer_name is None:
            return next(iter(self.printers.values()))
        if printer_name not in self.printers:
            raise DispatchFailure(f"Unknown printer: {printer_name}")
        return self.printers[printer_name]

    def create_job(self, printer_name: Optional[str] = None) -> BridgeJob:
        return NetworkPrintJob(self, printer_name)

    async def close(self) -> None:
        """Drop the control connection and stop reconnecting"""
        self.auto_reconnect = False
        tasks = [task for task in (self._connect_task, self._watch_task)
                 if task and not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        writer, self._reader, self._writer = self._writer, None, None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
        transport_logger.info("Bridge transport closed")


class MockPrintJob(BridgeJob):
    """Mock job that records its payload on the bridge"""

    def __init__(self, bridge: "MockBridge", printer_name: Optional[str] = None):
        super().__init__(printer_name)
        self.bridge = bridge

    async def dispatch(self) -> None:
        await asyncio.sleep(0)
        if self.bridge.dispatch_error is not None:
            raise self.bridge.dispatch_error
        logger.info(f"Mock bridge: would print {len(self.commands)} bytes "
                    f"on {self.printer_name or 'default printer'}")
        self.bridge.sent_jobs.append((self.printer_name, self.commands))


class MockBridge(BridgeInterface):
    """Mock print bridge for testing without the native client"""

    def __init__(self, printers: Optional[List[str]] = None, connect_after: int = 0,
                 start_error: Optional[Exception] = None):
        """
        Args:
            printers: Printer names reported by get_printers()
            connect_after: Number of transport_open reads that report closed
                before the transport opens
            start_error: Raised from start() when set
        """
        self.printers = printers if printers is not None else ["TSC TE244"]
        self.connect_after = connect_after
        self.start_error = start_error
        self.dispatch_error: Optional[Exception] = None
        self.auto_reconnect = False
        self.start_calls = 0
        self.started = False
        self.closed = False
        self.sent_jobs: List[Tuple[Optional[str], str]] = []
        self._reads = 0
        logger.info("Mock print bridge initialized (no actual client)")

    async def start(self) -> None:
        self.start_calls += 1
        await asyncio.sleep(0)
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    @property
    def transport_open(self) -> bool:
        if not self.started:
            return False
        self._reads += 1
        return self._reads > self.connect_after

    def disconnect(self) -> None:
        """Simulate the bridge dropping the transport"""
        self.started = False
        self._reads = 0

    async def close(self) -> None:
        self.auto_reconnect = False
        self.closed = True
        self.disconnect()

    async def get_printers(self) -> List[str]:
        return list(self.printers)

    def create_job(self, printer_name: Optional[str] = None) -> BridgeJob:
        return MockPrintJob(self, printer_name)


class UnavailableBridge(BridgeInterface):
    """Null bridge used when the print bridge client cannot be loaded"""

    available = False

    def __init__(self, reason: str = "Print bridge not installed"):
        self.reason = reason

    async def start(self) -> None:
        raise BridgeUnavailable(self.reason)

    @property
    def transport_open(self) -> bool:
        return False

    async def get_printers(self) -> List[str]:
        return []

    def create_job(self, printer_name: Optional[str] = None) -> BridgeJob:
        raise BridgeUnavailable(self.reason)


def load_bridge(factory: Callable[[], BridgeInterface]) -> BridgeInterface:
    """
    Resolve the bridge adapter once at startup

    Args:
        factory: Builds the real bridge; may raise if the client is missing

    Returns:
        The bridge, or UnavailableBridge if the factory failed
    """
    try:
        bridge = factory()
    except Exception as e:
        logger.error(f"Print bridge unavailable: {e}")
        return UnavailableBridge(str(e))
    if bridge is None:
        return UnavailableBridge()
    return bridge
