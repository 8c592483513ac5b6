"""Printer calibration.

A calibration sheet prints an outlined card with a 1 inch crosshair at its
centre. The user measures, from the crosshair centre, the distance to the
card's right edge and top edge, plus the printed length of one crosshair arm.
`calibrate` turns those three numbers into corrected offsets and scale.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from PySide6.QtCore import QLineF, QRectF

from cardgrid.config import (
    CALIBRATION_CROSSHAIR_IN, CALIBRATION_GAP_IN, CALIBRATION_TOLERANCE_IN,
    MAX_SCALE_PERCENT, MIN_SCALE_PERCENT,
)
from cardgrid.errors import InvalidGeometryError
from cardgrid.models.card import CalibrationResult


def _round3(value: float) -> float:
    return round(value, 3) + 0.0  # normalise -0.0


def calibrate(
    measured_right: float,
    measured_top: float,
    measured_crosshair: float,
    card_width: float = 2.5,
    card_height: float = 3.5,
    current_horizontal_offset: float = 0.0,
    current_vertical_offset: float = 0.0,
    current_scale_percent: float = 100.0,
) -> CalibrationResult:
    """
    Corrected offsets and scale from three ruler measurements (inches).

    A positive horizontal adjustment moves the card right, a positive
    vertical adjustment moves it down. Adjustments and offsets are rounded
    to 0.001 in, the scale to a whole percent kept within the scale bounds.
    """
    if measured_crosshair <= 0:
        raise InvalidGeometryError("crosshair length", measured_crosshair, "must be positive")
    if card_width <= 0:
        raise InvalidGeometryError("card width", card_width)
    if card_height <= 0:
        raise InvalidGeometryError("card height", card_height)

    horizontal = _round3(card_width / 2 - measured_right)
    vertical = _round3(card_height / 2 - measured_top)
    wanted = float(round(current_scale_percent * (CALIBRATION_CROSSHAIR_IN / measured_crosshair)))
    new_scale = min(max(wanted, MIN_SCALE_PERCENT), MAX_SCALE_PERCENT)

    return CalibrationResult(
        new_horizontal_offset=_round3(current_horizontal_offset + horizontal),
        new_vertical_offset=_round3(current_vertical_offset + vertical),
        new_scale_percent=new_scale,
        horizontal_adjustment=horizontal,
        vertical_adjustment=vertical,
        scale_adjustment=new_scale - current_scale_percent,
        diagnostics=_diagnose(horizontal, vertical, measured_crosshair, wanted, new_scale),
    )


def _diagnose(horizontal: float, vertical: float, crosshair: float,
              wanted_scale: float, new_scale: float) -> Tuple[str, str, str]:
    if abs(horizontal) < CALIBRATION_TOLERANCE_IN:
        h_text = "Well centered"
    else:
        h_text = f'Off by {abs(horizontal):.3f}" {"left" if horizontal > 0 else "right"}'

    if abs(vertical) < CALIBRATION_TOLERANCE_IN:
        v_text = "Well centered"
    else:
        v_text = f'Off by {abs(vertical):.3f}" {"up" if vertical > 0 else "down"}'

    error = crosshair - CALIBRATION_CROSSHAIR_IN
    if abs(error) < CALIBRATION_TOLERANCE_IN:
        s_text = "Accurate scale"
    else:
        s_text = f"Printer {'enlarges' if error > 0 else 'shrinks'} by {abs(error) * 100:.1f}%"
    if new_scale != wanted_scale:
        s_text = f"{s_text}; scale limited to {new_scale:g}% (needs {wanted_scale:g}%)"
    return h_text, v_text, s_text


@dataclass(frozen=True)
class CalibrationLayout:
    card: QRectF
    crosshair: Tuple[QLineF, ...]
    centre: Tuple[float, float]


def calibration_card_layout(
    card_width: float = 2.5,
    card_height: float = 3.5,
    page_width: float = 8.5,
    page_height: float = 11.0,
    offset_horizontal: float = 0.0,
    offset_vertical: float = 0.0,
    scale_percent: float = 100.0,
) -> CalibrationLayout:
    """Outline and crosshair segments (inches) of a calibration sheet.

    The crosshair arms are scaled like the cards will be and broken by a
    small gap at the centre so the centre point stays visible.
    """
    x = (page_width - card_width) / 2 + offset_horizontal
    y = (page_height - card_height) / 2 + offset_vertical
    cx, cy = x + card_width / 2, y + card_height / 2
    arm = CALIBRATION_CROSSHAIR_IN * scale_percent / 100.0
    gap = CALIBRATION_GAP_IN / 2
    segments = (
        QLineF(cx - arm / 2, cy, cx - gap, cy),
        QLineF(cx + gap, cy, cx + arm / 2, cy),
        QLineF(cx, cy - arm / 2, cx, cy - gap),
        QLineF(cx, cy + gap, cx, cy + arm / 2),
    )
    return CalibrationLayout(card=QRectF(x, y, card_width, card_height), crosshair=segments, centre=(cx, cy))
