"""
Bridge noise boundary

The native print bridge library reports transport hiccups (raw event
objects, websocket close frames, reconnect chatter) as ordinary exceptions
and unhandled task errors. None of them are actionable for the user, so they
are caught at the bridge boundary and turned into BridgeNoise instead of
surfacing as application errors. Anything that does not match a known
signature passes through untouched.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .interfaces import BridgeInterface, BridgeJob, BridgeNoise

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOISE_SIGNATURES = (
    "[object Event]",
    "WebSocket",
    "jsprintmanager",
    "JSPrintManager",
    "ws://",
    "wss://",
)

# Logger used by the bridge library for its own transport chatter
BRIDGE_LIBRARY_LOGGER = "labelbridge.bridge.transport"


def is_bridge_noise(error: Any) -> bool:
    """Check an exception, message or event against the noise signatures"""
    if error is None:
        return False
    if isinstance(error, BridgeNoise):
        return True
    texts = [str(error), type(error).__name__, repr(error)]
    return any(sig in text for text in texts for sig in NOISE_SIGNATURES)


class BridgeNoiseFilter(logging.Filter):
    """Drop bridge library log records that match a noise signature"""

    def filter(self, record: logging.LogRecord) -> bool:
        if is_bridge_noise(record.getMessage()):
            return False
        if record.exc_info and is_bridge_noise(record.exc_info[1]):
            return False
        return True


_installed_loggers = set()


def install_log_filter(logger_name: str = BRIDGE_LIBRARY_LOGGER) -> bool:
    """Attach BridgeNoiseFilter to the bridge library logger once"""
    if logger_name in _installed_loggers:
        return False
    logging.getLogger(logger_name).addFilter(BridgeNoiseFilter())
    _installed_loggers.add(logger_name)
    logger.debug(f"Bridge noise filter installed on '{logger_name}'")
    return True


def install_loop_handler(loop: asyncio.AbstractEventLoop) -> bool:
    """
    Swallow unhandled bridge noise on one event loop

    The previous exception handler (or the loop default) still receives every
    other error. Installing twice on the same loop is a no-op.

    Returns:
        True if the handler was installed by this call
    """
    previous = loop.get_exception_handler()
    if getattr(previous, "_bridge_noise_handler", False):
        return False

    def handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        if is_bridge_noise(context.get("exception")) or is_bridge_noise(context.get("message")):
            logger.debug(f"Suppressed bridge noise: {context.get('exception') or context.get('message')}")
            return
        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)

    handler._bridge_noise_handler = True
    loop.set_exception_handler(handler)
    return True


async def guarded(call: Callable[[], Awaitable[T]]) -> T:
    """Await a bridge call, reclassifying noise errors as BridgeNoise"""
    try:
        return await call()
    except BridgeNoise:
        raise
    except Exception as e:
        if is_bridge_noise(e):
            logger.debug(f"Bridge noise: {e}")
            raise BridgeNoise(e) from e
        raise


class NoiseGuardedJob(BridgeJob):
    """Print job wrapper whose dispatch goes through the noise boundary"""

    def __init__(self, job: BridgeJob):
        super().__init__(job.printer_name)
        self._job = job

    async def dispatch(self) -> None:
        self._job.commands = self.commands
        await guarded(self._job.dispatch)


class NoiseGuardedBridge(BridgeInterface):
    """Boundary adapter around a bridge: every call is noise-guarded"""

    def __init__(self, bridge: BridgeInterface):
        self._bridge = bridge
        install_log_filter()

    @property
    def wrapped(self) -> BridgeInterface:
        return self._bridge

    @property
    def available(self) -> bool:
        return self._bridge.available

    @property
    def auto_reconnect(self) -> bool:
        return self._bridge.auto_reconnect

    @auto_reconnect.setter
    def auto_reconnect(self, value: bool) -> None:
        self._bridge.auto_reconnect = value

    async def start(self) -> None:
        await guarded(self._bridge.start)

    @property
    def transport_open(self) -> bool:
        try:
            return self._bridge.transport_open
        except Exception as e:
            if is_bridge_noise(e):
                raise BridgeNoise(e) from e
            raise

    async def get_printers(self) -> List[str]:
        return await guarded(self._bridge.get_printers)

    def create_job(self, printer_name: Optional[str] = None) -> BridgeJob:
        return NoiseGuardedJob(self._bridge.create_job(printer_name))

    async def close(self) -> None:
        await guarded(self._bridge.close)

    def describe(self) -> Dict[str, Any]:
        return self._bridge.describe()
