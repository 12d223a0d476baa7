"""
Label Bridge wiring

Builds the print bridge, the connection manager and the print queue once,
so the surrounding POS application can hand the same objects to every
screen that prints.
"""

import logging
from dataclasses import dataclass

from labelbridge import config
from labelbridge.hardware.bridge import MockBridge, NetworkBridge, load_bridge
from labelbridge.hardware.connection import PrinterConnectionManager, RetryPolicy
from labelbridge.hardware.interfaces import LabelConfig
from labelbridge.hardware.tspl_encoder import generate_test_label
from labelbridge.print_queue import PrintQueue

logger = logging.getLogger(__name__)


def configure_logging(level=None):
    logging.basicConfig(
        level=getattr(logging, level or config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def label_config_from_env():
    """Label stock geometry from LABELBRIDGE_LABEL_* settings"""
    return LabelConfig(
        width=config.LABEL_WIDTH_MM,
        height=config.LABEL_HEIGHT_MM,
        gap=config.LABEL_GAP_MM,
        direction=config.LABEL_DIRECTION,
        dpi=config.LABEL_DPI,
        columns=config.LABEL_COLUMNS,
        column_gap=config.LABEL_COLUMN_GAP_MM,
    )


@dataclass
class LabelPrinter:
    """Connection manager and queue sharing one print bridge"""
    connection: PrinterConnectionManager
    queue: PrintQueue

    async def start(self):
        """Initial refresh, then background status polling"""
        status = await self.connection.refresh()
        self.connection.start_polling()
        return status

    async def print_test_label(self):
        """Print the LEFT/RIGHT alignment strip on the selected printer"""
        commands = generate_test_label(self.queue.label_config)
        return await self.connection.send(commands, self.connection.selected_printer)

    async def close(self):
        await self.connection.close()


def init_label_printer(use_real_bridge=None, bridge_factory=None, label_config=None):
    """
    Build the label printing stack

    This never fails: a missing bridge becomes UnavailableBridge and the
    status reports NOT_INSTALLED.

    Args:
        use_real_bridge: Use NetworkBridge instead of MockBridge
            (defaults to LABELBRIDGE_USE_REAL_BRIDGE)
        bridge_factory: Override the bridge constructor
        label_config: Label stock geometry (defaults to env settings)
    """
    if use_real_bridge is None:
        use_real_bridge = config.USE_REAL_BRIDGE

    if bridge_factory is None:
        if use_real_bridge:
            logger.info(f"🖨️  Using print bridge at {config.BRIDGE_HOST}:{config.BRIDGE_PORT}")
            bridge_factory = NetworkBridge
        else:
            logger.info("🖨️  Using mock print bridge (LABELBRIDGE_USE_REAL_BRIDGE=false)")
            bridge_factory = MockBridge

    bridge = load_bridge(bridge_factory)
    connection = PrinterConnectionManager(bridge, policy=RetryPolicy())
    queue = PrintQueue(connection, label_config or label_config_from_env())
    return LabelPrinter(connection=connection, queue=queue)
