"""
Hardware interface abstractions for Label Bridge

Provides the label data model and the abstract print bridge interface so
that the real bridge client can be swapped for a mock in tests.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass


class LabelBridgeError(Exception):
    """Base class for label printing errors"""


class BridgeUnavailable(LabelBridgeError):
    """Bridge client is not installed or could not be loaded"""


class ConnectionTimeout(LabelBridgeError):
    """Bridge transport did not open within the retry policy"""


class DispatchFailure(LabelBridgeError):
    """Bridge rejected a print job"""


class BridgeNoise(LabelBridgeError):
    """Spurious transport error raised by the bridge library itself"""

    def __init__(self, original: BaseException):
        super().__init__(str(original))
        self.original = original


class ConfigurationInvalid(LabelBridgeError):
    """Malformed LabelConfig; fixes maps each bad field to a usable value"""

    def __init__(self, config: Any, fixes: Dict[str, Any]):
        super().__init__(f"Invalid label config {config}")
        self.config = config
        self.fixes = fixes


class ConnectionStatus(str, Enum):
    """Print bridge connection state"""
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    NOT_INSTALLED = "not_installed"


@dataclass(frozen=True)
class LabelConfig:
    """Physical label stock geometry (millimeters)"""
    width: float
    height: float
    gap: float
    direction: int  # 0 or 1
    dpi: int
    columns: int
    column_gap: float


# TSC TE244 with 38x25mm 2-up strip stock
TSC_TE244_CONFIG = LabelConfig(
    width=38,
    height=25,
    gap=2,
    direction=1,
    dpi=203,
    columns=2,
    column_gap=2,
)


def _field(source: Any, name: str, default: Any = None) -> Any:
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


@dataclass(frozen=True)
class BarcodeLabel:
    """Content of one physical label"""
    barcode: str
    product_name: Optional[str] = None
    price: Optional[str] = None
    sku: Optional[str] = None

    @classmethod
    def from_item(cls, item: Any) -> "BarcodeLabel":
        """Build a label from a catalog item (object or mapping)"""
        price = _field(item, "selling_price")
        if price is None:
            price = _field(item, "price")
        return cls(
            barcode=_field(item, "barcode"),
            product_name=_field(item, "name") or _field(item, "product_name"),
            price=str(price) if price is not None else None,
            sku=_field(item, "sku"),
        )


@dataclass
class PrintResult:
    """Outcome of a print attempt"""
    success: bool
    message: str


class BridgeJob(ABC):
    """Raw print job bound to a named or default printer"""

    def __init__(self, printer_name: Optional[str] = None):
        self.printer_name = printer_name
        self.commands: str = ""

    @abstractmethod
    async def dispatch(self) -> None:
        """Send the raw command payload to the printer"""
        pass


class BridgeInterface(ABC):
    """Abstract interface for the local native print bridge"""

    available = True
    auto_reconnect = False

    @abstractmethod
    async def start(self) -> None:
        """Start the bridge transport"""
        pass

    @property
    @abstractmethod
    def transport_open(self) -> bool:
        """Check if the bridge transport is open"""
        pass

    @abstractmethod
    async def get_printers(self) -> List[str]:
        """List installed printer names"""
        pass

    @abstractmethod
    def create_job(self, printer_name: Optional[str] = None) -> BridgeJob:
        """Create a print job for the named printer (default printer if None)"""
        pass

    async def close(self) -> None:
        """Stop the bridge transport and any reconnect attempts"""
        pass

    def describe(self) -> Dict[str, Any]:
        """Bridge details for status displays"""
        return {
            'type': type(self).__name__,
            'available': self.available,
            'auto_reconnect': self.auto_reconnect,
        }
