import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name, default):
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# Application constants
APP_NAME = "Label Bridge"
APP_SUBTITLE = "Boutique Barcode Label Printing"
BRAND_NAME = os.getenv("LABELBRIDGE_BRAND_NAME", "SONAKSHI BOUTIQUE")
CURRENCY_PREFIX = os.getenv("LABELBRIDGE_CURRENCY_PREFIX", "Rs.")
LOG_LEVEL = os.getenv("LABELBRIDGE_LOG_LEVEL", "INFO").upper()

# Print bridge feature flag (mock bridge when false)
USE_REAL_BRIDGE = _env_bool("LABELBRIDGE_USE_REAL_BRIDGE", "false")

# Local print bridge endpoint
BRIDGE_HOST = os.getenv("LABELBRIDGE_BRIDGE_HOST", "127.0.0.1")
BRIDGE_PORT = int(os.getenv("LABELBRIDGE_BRIDGE_PORT", "25443"))
BRIDGE_DOWNLOAD_URL = os.getenv(
    "LABELBRIDGE_BRIDGE_DOWNLOAD_URL", "https://www.neodynamic.com/downloads/jspm/"
)

# Installed printers, "Name=host:port" pairs separated by commas.
# The first entry acts as the default printer.
PRINTERS = os.getenv("LABELBRIDGE_PRINTERS", "TSC TE244=192.168.0.52:9100")
RAW_PRINT_PORT = int(os.getenv("LABELBRIDGE_RAW_PRINT_PORT", "9100"))
PREFERRED_PRINTER_TOKENS = _env_list("LABELBRIDGE_PREFERRED_PRINTER_TOKENS", "tsc,te244")

# Connection timings (seconds)
POLL_INTERVAL = float(os.getenv("LABELBRIDGE_POLL_INTERVAL", "10"))
CONNECT_ATTEMPTS = int(os.getenv("LABELBRIDGE_CONNECT_ATTEMPTS", "10"))
CONNECT_INTERVAL = float(os.getenv("LABELBRIDGE_CONNECT_INTERVAL", "1.0"))
CONNECT_GRACE = float(os.getenv("LABELBRIDGE_CONNECT_GRACE", "0.5"))
CONNECT_DEADLINE = float(os.getenv("LABELBRIDGE_CONNECT_DEADLINE", "12"))

# TSC TE244 label stock: 38mm x 25mm, two labels per strip
LABEL_WIDTH_MM = float(os.getenv("LABELBRIDGE_LABEL_WIDTH_MM", "38"))
LABEL_HEIGHT_MM = float(os.getenv("LABELBRIDGE_LABEL_HEIGHT_MM", "25"))
LABEL_GAP_MM = float(os.getenv("LABELBRIDGE_LABEL_GAP_MM", "2"))
LABEL_COLUMN_GAP_MM = float(os.getenv("LABELBRIDGE_LABEL_COLUMN_GAP_MM", "2"))
LABEL_DIRECTION = int(os.getenv("LABELBRIDGE_LABEL_DIRECTION", "1"))
LABEL_DPI = int(os.getenv("LABELBRIDGE_LABEL_DPI", "203"))
LABEL_COLUMNS = int(os.getenv("LABELBRIDGE_LABEL_COLUMNS", "2"))

# Queue limits
MIN_COPIES = 1
MAX_COPIES = 100


def parse_printers(raw):
    """Parse a "Name=host:port,..." string into {name: (host, port)}."""
    printers = {}
    for part in raw.split(","):
        part = part.strip()
        if not part or "=" not in part:
            continue
        name, address = part.split("=", 1)
        host, _, port = address.strip().partition(":")
        printers[name.strip()] = (host, int(port) if port else RAW_PRINT_PORT)
    return printers
