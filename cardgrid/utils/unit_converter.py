import re
from typing import Tuple

from PySide6.QtCore import QSizeF
from PySide6.QtGui import QPageSize

from cardgrid.config import EXTRACTION_DPI

UNITS_TO_INCHES = {
    "in": 1.0,
    "cm": 1 / 2.54,
    "mm": 1 / 25.4,
    "pt": 1 / 72.0,
    "px": None  # special case
}
INCHES_TO_UNITS = {
    "in": 1.0,
    "cm": 2.54,
    "mm": 25.4,
    "pt": 72.0,
}

PAGE_SIZE_IDS = {
    "letter":  QPageSize.Letter,
    "legal":   QPageSize.Legal,
    "tabloid": QPageSize.Tabloid,
    "a3":      QPageSize.A3,
    "a4":      QPageSize.A4,
    "a5":      QPageSize.A5,
}


def _check_dpi(dpi: float) -> None:
    if dpi <= 0:
        raise ValueError("DPI must be a positive value.")


def parse_dimension(value, dpi: int = EXTRACTION_DPI, to_unit: str = "px") -> float:
    """
    Parses a dimension string or number into the target unit.
    Supported units: "in", "cm", "mm", "pt", "px"
    Numeric input is taken as px at *dpi*; a bare number in a string is inches.
    """
    _check_dpi(dpi)
    to_unit = to_unit.lower().replace('"', "in").strip()
    if to_unit not in UNITS_TO_INCHES:
        raise ValueError(f"Unsupported target unit: {to_unit}")

    if isinstance(value, (int, float)):
        px_val = float(value)
    else:
        value = str(value).strip().lower().replace('"', "in")
        match = re.fullmatch(r"(-?[0-9]*\.?[0-9]+)\s*([a-z]+)?", value)
        if not match:
            raise ValueError(f"Invalid dimension format: '{value}'")
        num, unit = match.groups()
        num = float(num)
        unit = (unit or "in").strip()
        if unit not in UNITS_TO_INCHES:
            raise ValueError(f"Unsupported input unit: {unit}")
        if unit == "px":
            px_val = num
        else:
            px_val = num * UNITS_TO_INCHES[unit] * dpi

    if to_unit == "px":
        return px_val
    inches = px_val / dpi
    return inches * INCHES_TO_UNITS[to_unit]


def format_dimension(pixels: float, unit: str = "in", dpi: int = EXTRACTION_DPI) -> str:
    if unit == "in":
        return f"{pixels_to_inches(pixels, dpi):.2f} in"
    elif unit == "cm":
        return f"{pixels_to_inches(pixels, dpi) * 2.54:.2f} cm"
    elif unit == "mm":
        return f"{pixels_to_inches(pixels, dpi) * 25.4:.1f} mm"
    elif unit == "px":
        return f"{pixels:.0f} px"
    else:
        raise ValueError(f"Unsupported unit: {unit}")


def inches_to_pixels(inches: float, dpi: int = EXTRACTION_DPI) -> float:
    """
    Converts a measurement in inches to pixels (unrounded).
    Raises:
        ValueError: If DPI is not positive.
    """
    _check_dpi(dpi)
    return inches * dpi


def pixels_to_inches(pixels: float, dpi: int = EXTRACTION_DPI) -> float:
    """
    Converts a measurement in pixels to inches.
    Raises:
        ValueError: If DPI is not positive.
    """
    _check_dpi(dpi)
    return pixels / dpi


def page_size_inches(name: str, landscape: bool = False) -> Tuple[float, float]:
    """Width and height in inches for a named paper size ("letter", "a4", ...)."""
    size_id = PAGE_SIZE_IDS.get(name.strip().lower())
    if size_id is None:
        raise ValueError(
            f"Unknown page size '{name}'. Use one of: {', '.join(PAGE_SIZE_IDS)}."
        )
    dims: QSizeF = QPageSize(size_id).size(QPageSize.Inch)
    width, height = dims.width(), dims.height()
    if landscape:
        width, height = height, width
    return width, height


def compute_scale_factor(
    max_size: Tuple[float, float],
    current_size: Tuple[float, float]
) -> float:
    """
    Given max_size (width, height) and current_size (width, height),
    return the uniform scale factor <= 1.0 needed to make
    current_size fit inside max_size.  Returns 1.0 if no scaling needed.
    """
    max_w, max_h = max_size
    cur_w, cur_h = current_size

    if cur_w <= 0 or cur_h <= 0:
        return 1.0

    if cur_w <= max_w and cur_h <= max_h:
        return 1.0

    return min(max_w / cur_w, max_h / cur_h)
