#!/usr/bin/env python3
"""
Tests for the status bar and queue panels
"""

import asyncio
import io

from rich.console import Console

from labelbridge.hardware.bridge import MockBridge, load_bridge
from labelbridge.hardware.connection import PrinterConnectionManager
from labelbridge.print_queue import PrintQueue
from labelbridge.ui import render_status


def _render(connection, queue=None):
    console = Console(file=io.StringIO(), width=120, color_system=None)
    render_status(connection, queue, console)
    return console.file.getvalue()


def test_not_installed_shows_download_link(clock):
    def factory():
        raise ImportError("no bridge")

    connection = PrinterConnectionManager(load_bridge(factory), clock=clock,
                                          download_url="https://example.com/bridge")
    output = _render(connection)

    assert "Print bridge not installed" in output
    assert "https://example.com/bridge" in output


def test_connected_lists_printers(clock, item):
    connection = PrinterConnectionManager(MockBridge(printers=["TSC TE244", "PDF"]), clock=clock)
    asyncio.run(connection.refresh())
    queue = PrintQueue(connection)
    queue.add_or_merge(item, 3)

    output = _render(connection, queue)

    assert "Printer service connected" in output
    assert "TSC TE244" in output
    assert "PDF" in output
    assert "Silk Saree" in output
    assert "3 labels / 2 strips" in output


def test_empty_queue(clock):
    connection = PrinterConnectionManager(MockBridge(), clock=clock)
    output = _render(connection, PrintQueue(connection))

    # Never initialized yet
    assert "Print bridge not installed" in output
    assert "No items in queue" in output
