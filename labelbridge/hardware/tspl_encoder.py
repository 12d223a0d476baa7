"""
TSPL command generation for TSC 2-up barcode label strips

Builds TSPL (TSC Printer Language) text for the TE244 with 38x25mm labels,
two labels side by side on each strip.

Strip layout (per column):
+----------------------+----------------------+
|  SONAKSHI BOUTIQUE   |  SONAKSHI BOUTIQUE   |
|  ||||||||||||||||||  |  ||||||||||||||||||  |
|       8901234        |       8901235        |
|      Silk Saree      |     Cotton Kurta     |
|       Rs.2499        |        Rs.899        |
+----------------------+----------------------+
"""

import logging
from typing import List, Optional, Sequence

from labelbridge import config as app_config
from .interfaces import BarcodeLabel, LabelConfig, TSC_TE244_CONFIG
from .layout import (
    COMPACT_LAYOUT,
    PRIMARY_LAYOUT,
    LayoutProfile,
    column_geometry,
    format_inches,
    normalize_config,
    strip_width_mm,
    truncate_text,
)

logger = logging.getLogger(__name__)

LINE_END = "\r\n"
DENSITY = 10
SPEED = 3
ALIGN_CENTER = 2
QUOTE_ESCAPE = '\\["]'

POSITIONS = {
    "left": [0],
    "right": [1],
    "both": [0, 1],
}


def count_strips(label_count: int, columns: int = 2) -> int:
    """Number of strips needed for label_count labels"""
    columns = max(1, columns)
    return -(-label_count // columns)


def sanitize_field(value: str) -> str:
    """Make a value safe inside a quoted TSPL field"""
    value = str(value).replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    return value.replace('"', QUOTE_ESCAPE)


def _header(config: LabelConfig, include_speed: bool = True) -> List[str]:
    commands = [
        f"SIZE {format_inches(strip_width_mm(config))},{format_inches(config.height)}",
        f"GAP {format_inches(config.gap)},0",
        f"DIRECTION {config.direction}",
        f"DENSITY {DENSITY}",
    ]
    if include_speed:
        commands.append(f"SPEED {SPEED}")
    return commands


def _text(x: int, y: int, font: str, content: str) -> str:
    return f'TEXT {x},{y},"{font}",0,1,1,{ALIGN_CENTER},"{sanitize_field(content)}"'


def _label_commands(label: BarcodeLabel, offset_x: int, center_x: int,
                    layout: LayoutProfile, brand: str, currency: str) -> List[str]:
    """TEXT/BARCODE commands for one label slot"""
    if not label.barcode:
        raise ValueError("BarcodeLabel.barcode is required")

    y_brand, y_barcode, y_text, y_name, y_price = layout.positions()
    barcode = sanitize_field(label.barcode)

    commands = [
        _text(center_x, y_brand, layout.brand_font, brand),
        # Readable flag 0: the barcode digits are printed as a separate TEXT line
        f'BARCODE {offset_x + layout.barcode_inset},{y_barcode},"128",{layout.barcode_height},'
        f'0,0,{layout.narrow_bar},{layout.wide_bar},"{barcode}"',
        _text(center_x, y_text, layout.text_font, label.barcode),
    ]

    if label.product_name:
        name = truncate_text(label.product_name, layout.name_max_length)
        commands.append(_text(center_x, y_name, layout.name_font, name))

    if label.price:
        commands.append(_text(center_x, y_price, layout.price_font, f"{currency}{label.price}"))

    return commands


def _join(commands: Sequence[str]) -> str:
    return "".join(cmd + LINE_END for cmd in commands)


def generate_tspl_commands(labels: Sequence[BarcodeLabel], copies: int = 1,
                           config: LabelConfig = TSC_TE244_CONFIG,
                           layout: LayoutProfile = PRIMARY_LAYOUT,
                           brand: Optional[str] = None,
                           currency: Optional[str] = None) -> str:
    """
    Generate TSPL for a batch of labels

    Labels are paired into strips in input order; an odd final label gets a
    strip of its own with only the left column filled.

    Args:
        labels: One entry per physical label (already expanded per copy)
        copies: PRINT count for every strip
        config: Label stock geometry
        layout: Vertical layout profile
        brand: Brand line (defaults to config BRAND_NAME)
        currency: Price prefix (defaults to config CURRENCY_PREFIX)

    Returns:
        TSPL command text with CRLF line endings
    """
    config = normalize_config(config)
    brand = app_config.BRAND_NAME if brand is None else brand
    currency = app_config.CURRENCY_PREFIX if currency is None else currency
    geometry = column_geometry(config)

    commands = _header(config)
    for start in range(0, len(labels), config.columns):
        strip = labels[start:start + config.columns]
        commands.append("CLS")
        for col, label in enumerate(strip):
            offset_x, center_x = geometry[col]
            commands.extend(_label_commands(label, offset_x, center_x, layout, brand, currency))
        commands.append(f"PRINT {copies}")

    logger.debug(f"Generated TSPL for {len(labels)} label(s) on "
                 f"{count_strips(len(labels), config.columns)} strip(s)")
    return _join(commands)


def generate_single_label_tspl(label: BarcodeLabel, position: str = "both", copies: int = 1,
                               config: LabelConfig = TSC_TE244_CONFIG,
                               layout: LayoutProfile = COMPACT_LAYOUT,
                               brand: Optional[str] = None,
                               currency: Optional[str] = None) -> str:
    """
    Generate TSPL for one strip with the label in the requested slot(s)

    Args:
        label: Label content
        position: "left", "right" or "both"
        copies: PRINT count
        config: Label stock geometry
        layout: Vertical layout profile (compact by default)

    Returns:
        TSPL command text with CRLF line endings
    """
    if position not in POSITIONS:
        raise ValueError(f"Unknown label position: {position}")

    config = normalize_config(config)
    brand = app_config.BRAND_NAME if brand is None else brand
    currency = app_config.CURRENCY_PREFIX if currency is None else currency
    geometry = column_geometry(config)

    commands = _header(config)
    commands.append("CLS")
    for col in POSITIONS[position]:
        if col >= len(geometry):
            logger.warning(f"Column {col} not available on a {config.columns}-column strip")
            continue
        offset_x, center_x = geometry[col]
        commands.extend(_label_commands(label, offset_x, center_x, layout, brand, currency))
    commands.append(f"PRINT {copies}")

    return _join(commands)


def generate_test_label(config: LabelConfig = TSC_TE244_CONFIG) -> str:
    """Alignment test strip: TEST plus the column name in every slot"""
    config = normalize_config(config)

    commands = _header(config, include_speed=False)
    commands.append("CLS")
    for col, (_, center_x) in enumerate(column_geometry(config)):
        if col == 0:
            marker = "LEFT"
        elif col == 1:
            marker = "RIGHT"
        else:
            marker = f"COL {col + 1}"
        commands.append(_text(center_x, 30, "2", "TEST"))
        commands.append(_text(center_x, 60, "1", marker))
    commands.append("PRINT 1")

    return _join(commands)


def encode_commands(commands: str) -> bytes:
    """TSPL text as bytes for a raw printer connection"""
    return commands.encode('utf-8')
