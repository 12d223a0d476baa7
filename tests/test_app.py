#!/usr/bin/env python3
"""
Tests for wiring the label printing stack together
"""

import asyncio

from labelbridge.app import init_label_printer, label_config_from_env
from labelbridge.hardware.bridge import MockBridge, UnavailableBridge
from labelbridge.hardware.interfaces import ConnectionStatus, TSC_TE244_CONFIG


def test_label_config_defaults():
    assert label_config_from_env() == TSC_TE244_CONFIG


def test_mock_stack_prints_test_label():
    printer = init_label_printer(use_real_bridge=False)
    assert isinstance(printer.connection.bridge.wrapped, MockBridge)

    async def run():
        status = await printer.start()
        result = await printer.print_test_label()
        await printer.close()
        return status, result

    status, result = asyncio.run(run())

    assert status == ConnectionStatus.CONNECTED
    assert printer.connection.selected_printer == "TSC TE244"
    assert result.success is True
    sent = printer.connection.bridge.wrapped.sent_jobs
    assert sent[0][0] == "TSC TE244"
    assert '"LEFT"' in sent[0][1] and '"RIGHT"' in sent[0][1]
    assert printer.connection.bridge.wrapped.closed is True
    assert printer.connection.get_status() == ConnectionStatus.DISCONNECTED


def test_missing_bridge_reports_not_installed():
    def factory():
        raise ImportError("print bridge client missing")

    printer = init_label_printer(bridge_factory=factory)
    assert isinstance(printer.connection.bridge.wrapped, UnavailableBridge)

    status = asyncio.run(printer.connection.initialize())
    assert status == ConnectionStatus.NOT_INSTALLED
