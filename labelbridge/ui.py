from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from labelbridge.config import APP_NAME
from labelbridge.hardware.interfaces import ConnectionStatus

STATUS_STYLES = {
    ConnectionStatus.CHECKING: ("⏳", "Checking printer service...", "yellow"),
    ConnectionStatus.CONNECTED: ("🟢", "Printer service connected", "bold green"),
    ConnectionStatus.DISCONNECTED: ("🔴", "Printer service disconnected", "bold red"),
    ConnectionStatus.NOT_INSTALLED: ("⚠️ ", "Print bridge not installed", "bold yellow"),
}


def status_text(status):
    icon, label, style = STATUS_STYLES[status]
    return Text(f"{icon} {label}", style=style)


def status_panel(snapshot):
    """Printer status bar: connection state, printers and install hint"""
    status = snapshot['status']
    body = Table.grid(padding=(0, 2))
    body.add_row(status_text(status))

    printers = snapshot.get('printers') or []
    if status == ConnectionStatus.CONNECTED and printers:
        selected = snapshot.get('selected_printer')
        for name in printers:
            marker = "[green]●[/green]" if name == selected else " "
            body.add_row(f"{marker} {name}")
    elif status == ConnectionStatus.NOT_INSTALLED:
        url = snapshot.get('download_url')
        body.add_row(f"Install the print bridge client: [link={url}]{url}[/link]")

    return Panel(body, title=f"🖨️  {APP_NAME}", border_style=STATUS_STYLES[status][2])


def queue_panel(queue):
    """Queued items with copy counts and the label/strip totals"""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Item")
    table.add_column("Barcode")
    table.add_column("Copies", justify="right")

    for entry in queue.entries:
        item = entry.item
        name = item.get("name") if isinstance(item, dict) else getattr(item, "name", "")
        barcode = item.get("barcode") if isinstance(item, dict) else getattr(item, "barcode", "")
        table.add_row(str(name or ""), str(barcode or ""), str(entry.copies))

    if not queue.entries:
        return Panel("No items in queue", title="Print Queue")
    title = f"Print Queue - {queue.total_labels()} labels / {queue.total_strips()} strips"
    return Panel(table, title=title)


def render_status(connection, queue=None, console=None):
    console = console or Console()
    console.print(status_panel(connection.snapshot()))
    if queue is not None:
        console.print(queue_panel(queue))
