"""
Print queue for barcode labels

Collects catalog items with a copy count, merges repeat selections, and
turns the queue into TSPL jobs sent through the connection manager. Two
labels share one strip, so N labels always print on ceil(N/2) strips.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from labelbridge import config
from labelbridge.hardware.connection import PrinterConnectionManager
from labelbridge.hardware.interfaces import (
    BarcodeLabel,
    LabelConfig,
    PrintResult,
    TSC_TE244_CONFIG,
)
from labelbridge.hardware.layout import PRIMARY_LAYOUT, LayoutProfile
from labelbridge.hardware.tspl_encoder import (
    count_strips,
    generate_single_label_tspl,
    generate_tspl_commands,
)

logger = logging.getLogger(__name__)


def clamp_copies(copies: int) -> int:
    return max(config.MIN_COPIES, min(config.MAX_COPIES, int(copies)))


def item_id(item: Any) -> Any:
    """
    Identity of a catalog item (object attribute or mapping key)

    Items without an id are keyed by barcode. Returns None when the item
    has neither.
    """
    for name in ("id", "barcode"):
        if isinstance(item, dict):
            key = item.get(name)
        else:
            key = getattr(item, name, None)
        if key is not None and key != "":
            return key
    return None


@dataclass
class QueueEntry:
    """Queued catalog item and how many labels to print for it"""
    item: Any
    copies: int

    @property
    def item_id(self) -> Any:
        return item_id(self.item)


class PrintQueue:
    """Label print queue backed by a PrinterConnectionManager"""

    def __init__(self, connection: PrinterConnectionManager,
                 label_config: LabelConfig = TSC_TE244_CONFIG,
                 layout: LayoutProfile = PRIMARY_LAYOUT):
        self.connection = connection
        self.label_config = label_config
        self.layout = layout
        self._entries: Dict[Any, QueueEntry] = {}
        self._printing = False

    @property
    def entries(self) -> List[QueueEntry]:
        return list(self._entries.values())

    @property
    def is_printing(self) -> bool:
        return self._printing

    def __len__(self) -> int:
        return len(self._entries)

    def _locked(self, action: str) -> bool:
        if self._printing:
            logger.warning(f"Print in progress, ignoring {action}")
            return True
        return False

    def add_or_merge(self, item: Any, copies: int = 1) -> Optional[QueueEntry]:
        """
        Add an item, or add copies to it if it is already queued

        A merged entry keeps its original position in the queue.

        Returns:
            The queue entry, or None while a print is in progress or when
            the item has no id or barcode
        """
        if self._locked("add"):
            return None

        key = item_id(item)
        if key is None:
            logger.warning(f"Ignoring item without id or barcode: {item!r}")
            return None
        entry = self._entries.get(key)
        if entry is not None:
            entry.copies = clamp_copies(entry.copies + copies)
            logger.debug(f"Merged item {key}: {entry.copies} copies")
        else:
            entry = QueueEntry(item=item, copies=clamp_copies(copies))
            self._entries[key] = entry
            logger.debug(f"Queued item {key}: {entry.copies} copies")
        return entry

    def remove(self, key: Any) -> None:
        if self._locked("remove"):
            return
        self._entries.pop(key, None)

    def adjust_copies(self, key: Any, delta: int) -> None:
        if self._locked("adjust"):
            return
        entry = self._entries.get(key)
        if entry is not None:
            entry.copies = clamp_copies(entry.copies + delta)

    def clear(self) -> None:
        if self._locked("clear"):
            return
        self._entries.clear()

    def total_labels(self) -> int:
        return sum(entry.copies for entry in self._entries.values())

    def total_strips(self) -> int:
        return count_strips(self.total_labels(), self.label_config.columns)

    def flatten(self) -> List[Any]:
        """One item reference per label, in queue order"""
        items = []
        for entry in self._entries.values():
            items.extend([entry.item] * entry.copies)
        return items

    def _print_summary(self, label_count: int) -> str:
        strips = count_strips(label_count, self.label_config.columns)
        return f"Printed {label_count} label(s) on {strips} strip(s)!"

    async def _print_items(self, items: List[Any]) -> PrintResult:
        labels = [BarcodeLabel.from_item(item) for item in items]
        commands = generate_tspl_commands(labels, 1, self.label_config, self.layout)
        result = await self.connection.send(commands, self.connection.selected_printer)
        if result.success:
            result = PrintResult(success=True, message=self._print_summary(len(labels)))
        return result

    async def print_all(self) -> PrintResult:
        """
        Print every queued label

        The queue is cleared only when the job was sent; on failure it is
        left as is so the user can retry.
        """
        if self._printing:
            return PrintResult(success=False, message="A print job is already in progress")
        if not self._entries:
            return PrintResult(success=False, message="No items selected")

        self._printing = True
        try:
            result = await self._print_items(self.flatten())
            if result.success:
                self._entries.clear()
                logger.info(result.message)
            else:
                logger.error(f"Queue print failed: {result.message}")
            return result
        except Exception as e:
            logger.error(f"Queue print failed: {e}")
            return PrintResult(success=False, message=f"Print failed: {str(e) or 'Unknown error'}")
        finally:
            self._printing = False

    async def print_single(self, item: Any, copies: int = 1) -> PrintResult:
        """Print labels for one item right away, bypassing the queue"""
        copies = clamp_copies(copies)
        try:
            result = await self._print_items([item] * copies)
        except Exception as e:
            logger.error(f"Print now failed for item {item_id(item)}: {e}")
            return PrintResult(success=False, message=f"Print failed: {str(e) or 'Unknown error'}")
        if result.success:
            logger.info(result.message)
        return result

    async def print_slot(self, item: Any, position: str = "left", copies: int = 1) -> PrintResult:
        """Print one strip with the item only in the given slot(s)"""
        try:
            commands = generate_single_label_tspl(BarcodeLabel.from_item(item), position,
                                                  clamp_copies(copies), self.label_config)
        except ValueError as e:
            return PrintResult(success=False, message=f"Print failed: {e}")
        return await self.connection.send(commands, self.connection.selected_printer)
