"""
Label geometry for TSC 2-up strip printers

All element coordinates are device dots. SIZE and GAP take inches, so the
physical millimeter values are converted both ways here.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Tuple

from .interfaces import ConfigurationInvalid, LabelConfig

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
DEFAULT_DPI = 203
ELLIPSIS = ".."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mm_to_dots(mm: float, dpi: int) -> int:
    """Convert millimeters to printer dots at the given resolution"""
    return _round_half_up(mm / MM_PER_INCH * dpi)


def mm_to_inches(mm: float) -> float:
    return mm / MM_PER_INCH


def format_inches(mm: float) -> str:
    """Inches with two decimals, as SIZE and GAP expect"""
    return f"{mm_to_inches(mm):.2f}"


def strip_width_mm(config: LabelConfig) -> float:
    """Total strip width: every column plus one column gap"""
    return config.width * config.columns + config.column_gap


def column_offset(column: int, single_width_dots: int, gap_dots: int) -> int:
    return column * (single_width_dots + gap_dots)


def column_center(column: int, single_width_dots: int, gap_dots: int) -> int:
    return column_offset(column, single_width_dots, gap_dots) + _round_half_up(single_width_dots / 2)


def truncate_text(text: str, max_length: int) -> str:
    """Cut text longer than max_length to max_length-2 chars plus '..'"""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(ELLIPSIS)] + ELLIPSIS


def validate_config(config: LabelConfig) -> None:
    """Raise ConfigurationInvalid if any geometry value is out of range"""
    fixes = {}
    if not isinstance(config.columns, int) or config.columns < 1:
        fixes['columns'] = 1
    if not config.dpi or config.dpi <= 0:
        fixes['dpi'] = DEFAULT_DPI
    if config.direction not in (0, 1):
        fixes['direction'] = 1 if config.direction else 0
    for name in ('width', 'height', 'gap', 'column_gap'):
        if getattr(config, name) < 0:
            fixes[name] = 0

    if fixes:
        raise ConfigurationInvalid(config, fixes)


def normalize_config(config: LabelConfig) -> LabelConfig:
    """
    Return a config with usable geometry.

    A malformed config is not fatal for the encoder: out of range values are
    replaced with the nearest workable ones and a warning is logged.
    """
    try:
        validate_config(config)
    except ConfigurationInvalid as e:
        logger.warning(f"{e}, using {e.fixes}")
        return replace(config, **e.fixes)
    return config


@dataclass(frozen=True)
class LayoutProfile:
    """
    Vertical layout of one label slot.

    Each element sits a fixed increment below the previous one. The cursor
    advances even when an optional element (name, price) is missing, so the
    price line never moves up.
    """
    name: str
    start_y: int
    brand_font: str
    brand_to_barcode: int
    barcode_height: int
    barcode_to_text: int
    text_font: str
    text_to_name: int
    name_font: str
    name_max_length: int
    name_to_price: int
    price_font: str
    barcode_inset: int = 10
    narrow_bar: int = 2
    wide_bar: int = 2

    def positions(self) -> Tuple[int, int, int, int, int]:
        """Y offsets for brand, barcode, readable text, name and price"""
        y_brand = self.start_y
        y_barcode = y_brand + self.brand_to_barcode
        y_text = y_barcode + self.barcode_height + self.barcode_to_text
        y_name = y_text + self.text_to_name
        y_price = y_name + self.name_to_price
        return y_brand, y_barcode, y_text, y_name, y_price


# "Print now" layout used for queue and batch printing
PRIMARY_LAYOUT = LayoutProfile(
    name="primary",
    start_y=10,
    brand_font="3",
    brand_to_barcode=30,
    barcode_height=50,
    barcode_to_text=8,
    text_font="2",
    text_to_name=24,
    name_font="3",
    name_max_length=18,
    name_to_price=28,
    price_font="4",
)

# Tighter layout for ad-hoc single slot printing
COMPACT_LAYOUT = LayoutProfile(
    name="compact",
    start_y=8,
    brand_font="2",
    brand_to_barcode=24,
    barcode_height=45,
    barcode_to_text=5,
    text_font="2",
    text_to_name=20,
    name_font="2",
    name_max_length=16,
    name_to_price=20,
    price_font="3",
)


def column_geometry(config: LabelConfig) -> List[Tuple[int, int]]:
    """(offset, center) in dots for every column of the strip"""
    single_width = mm_to_dots(config.width, config.dpi)
    gap = mm_to_dots(config.column_gap, config.dpi)
    return [
        (column_offset(col, single_width, gap), column_center(col, single_width, gap))
        for col in range(config.columns)
    ]
