# cardgrid/config.py
from PySide6.QtCore import Qt

# Pixel-domain geometry is always expressed at the extraction resolution.
EXTRACTION_DPI = 300
SCREEN_DPI = 72

SIZING_MODE_FLAGS = {
    "actual-size": {"aspect": None,                          "enlarge": True,  "desc": "Actual Size (No Scaling)"},
    "fit-to-card": {"aspect": Qt.KeepAspectRatio,            "enlarge": False, "desc": "Fit to Card"},
    "fill-card":   {"aspect": Qt.KeepAspectRatioByExpanding, "enlarge": True,  "desc": "Fill Card (Crop to Fit)"},
}

VALID_SIZING_MODES = [m for m in SIZING_MODE_FLAGS]
VALID_ROTATIONS = (0, 90, 180, 270)

DEFAULT_PAGE_SIZE_IN = (8.5, 11.0)
DEFAULT_CARD_SIZE_IN = (2.5, 3.5)
DEFAULT_SCALE_PERCENT = 100.0
MIN_SCALE_PERCENT = 1.0
MAX_SCALE_PERCENT = 200.0

PREVIEW_MAX_WIDTH = 400
PREVIEW_MAX_HEIGHT = 500

PREVIEW_CACHE_MAX_ENTRIES = 50
PREVIEW_CACHE_MAX_AGE_S = 5 * 60
PREVIEW_CACHE_EVICT_FRACTION = 0.2

EXTRACTION_TIMEOUT_S = 30.0
POSITIONING_TIMEOUT_S = 5.0
PROCESSING_TIMEOUT_S = 15.0

CALIBRATION_CROSSHAIR_IN = 1.0
CALIBRATION_TOLERANCE_IN = 0.01
CALIBRATION_GAP_IN = 0.04

# Surfaces larger than this on either axis are refused.
MAX_SURFACE_DIMENSION = 50000
