#!/usr/bin/env python3
"""
Tests for the label print queue: merging, clamping, pagination, printing
"""

import asyncio
from dataclasses import dataclass

import pytest

from labelbridge.hardware.bridge import MockBridge, load_bridge
from labelbridge.hardware.connection import PrinterConnectionManager
from labelbridge.print_queue import PrintQueue, clamp_copies


@dataclass
class Item:
    id: str
    barcode: str
    name: str
    selling_price: float
    sku: str = ""


SAREE = Item("saree", "8901234", "Silk Saree", 2499)
KURTA = Item("kurta", "8901235", "Cotton Kurta", 899)
DUPATTA = Item("dupatta", "8901236", "Zari Dupatta", 650)


@pytest.fixture
def bridge():
    return MockBridge(printers=["TSC TE244"])


@pytest.fixture
def queue(bridge, clock):
    return PrintQueue(PrinterConnectionManager(bridge, clock=clock))


def _sent(bridge):
    assert len(bridge.sent_jobs) == 1
    return bridge.sent_jobs[0][1].split("\r\n")


def test_clamp_copies():
    assert clamp_copies(0) == 1
    assert clamp_copies(-3) == 1
    assert clamp_copies(50) == 50
    assert clamp_copies(105) == 100


def test_merge_sums_copies(queue):
    queue.add_or_merge(SAREE, 3)
    entry = queue.add_or_merge(SAREE, 4)

    assert len(queue) == 1
    assert entry.copies == 7


def test_merge_clamps_to_100(queue):
    queue.add_or_merge(SAREE, 95)
    assert queue.add_or_merge(SAREE, 10).copies == 100
    assert queue.add_or_merge(KURTA, 500).copies == 100
    assert queue.add_or_merge(DUPATTA, 0).copies == 1


def test_merge_keeps_position(queue):
    queue.add_or_merge(SAREE, 1)
    queue.add_or_merge(KURTA, 1)
    queue.add_or_merge(SAREE, 2)

    assert [entry.item_id for entry in queue.entries] == ["saree", "kurta"]


def test_mapping_items_merge_by_id(queue, item):
    queue.add_or_merge(item, 1)
    queue.add_or_merge(dict(item), 2)
    assert queue.total_labels() == 3


def test_adjust_copies(queue):
    queue.add_or_merge(SAREE, 2)

    queue.adjust_copies("saree", 5)
    assert queue.entries[0].copies == 7
    queue.adjust_copies("saree", -50)
    assert queue.entries[0].copies == 1
    queue.adjust_copies("saree", 500)
    assert queue.entries[0].copies == 100
    queue.adjust_copies("missing", 1)
    assert len(queue) == 1


def test_remove(queue):
    queue.add_or_merge(SAREE, 1)
    queue.remove("missing")
    queue.remove("saree")
    assert len(queue) == 0


def test_totals_and_flatten(queue):
    queue.add_or_merge(SAREE, 1)
    queue.add_or_merge(KURTA, 2)
    queue.add_or_merge(DUPATTA, 1)

    assert queue.total_labels() == 4
    assert queue.total_strips() == 2
    assert queue.flatten() == [SAREE, KURTA, KURTA, DUPATTA]


@pytest.mark.parametrize("copies", [[1], [2, 3], [5, 1, 1], [100, 99, 1]])
def test_totals_match_copies(queue, copies):
    for i, count in enumerate(copies):
        queue.add_or_merge(Item(f"item-{i}", f"89{i:05d}", "Item", 10), count)

    total = sum(copies)
    assert queue.total_labels() == total
    assert queue.total_strips() == -(-total // 2)
    assert len(queue.flatten()) == total


def test_print_all_success_clears_queue(queue, bridge):
    queue.add_or_merge(SAREE, 1)
    queue.add_or_merge(KURTA, 2)

    result = asyncio.run(queue.print_all())

    assert result.success is True
    assert result.message == "Printed 3 label(s) on 2 strip(s)!"
    assert len(queue) == 0
    lines = _sent(bridge)
    assert lines.count("CLS") == 2
    assert lines.count("PRINT 1") == 2
    assert [line for line in lines if line.startswith("BARCODE")][1].endswith('"8901235"')


def test_print_all_uses_selected_printer(queue, bridge):
    queue.connection.select_printer("TSC TE244")
    queue.add_or_merge(SAREE, 1)

    asyncio.run(queue.print_all())

    assert bridge.sent_jobs[0][0] == "TSC TE244"


def test_print_all_failure_keeps_queue(queue, bridge):
    bridge.dispatch_error = RuntimeError("Printer out of paper")
    queue.add_or_merge(SAREE, 2)

    result = asyncio.run(queue.print_all())

    assert result.success is False
    assert "Printer out of paper" in result.message
    assert queue.total_labels() == 2
    assert queue.is_printing is False


def test_print_all_empty_queue(queue, bridge):
    result = asyncio.run(queue.print_all())
    assert result.success is False
    assert result.message == "No items selected"
    assert bridge.sent_jobs == []


def test_print_all_bridge_not_installed(clock):
    def factory():
        raise ImportError("no bridge")

    queue = PrintQueue(PrinterConnectionManager(load_bridge(factory), clock=clock))
    queue.add_or_merge(SAREE, 1)

    result = asyncio.run(queue.print_all())

    assert result.success is False
    assert len(queue) == 1


def test_print_all_item_without_barcode(queue, bridge):
    queue.add_or_merge(Item("blank", "", "No Barcode", 10), 1)

    result = asyncio.run(queue.print_all())

    assert result.success is False
    assert result.message == "Print failed: BarcodeLabel.barcode is required"
    assert len(queue) == 1
    assert bridge.sent_jobs == []


def test_print_single_failure_keeps_reason(queue, bridge):
    result = asyncio.run(queue.print_single(Item("blank", "", "No Barcode", 10), 2))

    assert result.success is False
    assert result.message == "Print failed: BarcodeLabel.barcode is required"
    assert bridge.sent_jobs == []


def test_concurrent_print_all_is_rejected(queue, bridge):
    queue.add_or_merge(SAREE, 2)

    async def run():
        await queue.connection.initialize()
        return await asyncio.gather(queue.print_all(), queue.print_all())

    first, second = asyncio.run(run())

    assert first.success is True
    assert second.success is False
    assert "in progress" in second.message
    assert len(bridge.sent_jobs) == 1


def test_queue_locked_while_printing(queue):
    queue.add_or_merge(SAREE, 1)
    during = {}

    async def run():
        await queue.connection.initialize()
        task = asyncio.ensure_future(queue.print_all())
        await asyncio.sleep(0)
        during['printing'] = queue.is_printing
        during['added'] = queue.add_or_merge(KURTA, 1)
        queue.remove("saree")
        return await task

    result = asyncio.run(run())

    assert during == {'printing': True, 'added': None}
    assert result.success is True
    assert result.message == "Printed 1 label(s) on 1 strip(s)!"


def test_print_single_leaves_queue_alone(queue, bridge):
    queue.add_or_merge(KURTA, 4)

    result = asyncio.run(queue.print_single(SAREE, 3))

    assert result.success is True
    assert result.message == "Printed 3 label(s) on 2 strip(s)!"
    assert queue.total_labels() == 4
    lines = _sent(bridge)
    assert lines.count("CLS") == 2
    assert lines.count("PRINT 1") == 2
    assert all(line.endswith('"8901234"') for line in lines if line.startswith("BARCODE"))


def test_print_single_clamps_copies(queue, bridge):
    result = asyncio.run(queue.print_single(SAREE, 250))

    assert result.message == "Printed 100 label(s) on 50 strip(s)!"
    assert _sent(bridge).count("CLS") == 50


def test_print_slot_right(queue, bridge):
    result = asyncio.run(queue.print_slot(SAREE, "right", 2))

    assert result.success is True
    lines = _sent(bridge)
    assert [line for line in lines if line.startswith("BARCODE")] == [
        'BARCODE 330,32,"128",45,0,0,2,2,"8901234"'
    ]
    assert "PRINT 2" in lines


def test_print_slot_bad_position(queue, bridge):
    result = asyncio.run(queue.print_slot(SAREE, "middle"))
    assert result.success is False
    assert bridge.sent_jobs == []


def test_items_without_id_are_keyed_by_barcode(queue):
    queue.add_or_merge({"barcode": "8901234", "name": "Silk Saree"}, 1)
    queue.add_or_merge({"barcode": "8901235", "name": "Cotton Kurta"}, 2)
    queue.add_or_merge({"barcode": "8901234", "name": "Silk Saree"}, 3)

    assert [entry.item_id for entry in queue.entries] == ["8901234", "8901235"]
    assert [entry.copies for entry in queue.entries] == [4, 2]


def test_item_without_id_or_barcode_is_ignored(queue):
    assert queue.add_or_merge({"name": "Mystery"}, 1) is None
    assert queue.add_or_merge({"id": "", "barcode": "", "name": "Blank"}, 1) is None
    assert len(queue) == 0
