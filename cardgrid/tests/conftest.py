import os
import sys

# Offscreen platform for Qt
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QRect
from PySide6.QtGui import QColor, QGuiApplication, QImage, QPainter

from cardgrid.models.page import Page, Side

app = QGuiApplication.instance() or QGuiApplication(sys.argv[:1])


def solid_surface(width, height, color="white"):
    image = QImage(width, height, QImage.Format_RGB32)
    image.fill(QColor(color))
    return image


def paint_rect(image, x, y, w, h, color):
    painter = QPainter(image)
    painter.fillRect(QRect(x, y, w, h), QColor(color))
    painter.end()
    return image


def make_pages(count, sides=None):
    sides = sides or [None] * count
    return [
        Page(source_file=f"sheet_{i}.png", original_index=i, display_order=i, side=sides[i])
        for i in range(count)
    ]


@pytest.fixture
def pages4():
    return make_pages(4)


@pytest.fixture
def duplex_pages():
    return make_pages(4, [Side.FRONT, Side.BACK, Side.FRONT, Side.BACK])


@pytest.fixture
def surface():
    return solid_surface


@pytest.fixture
def paint():
    return paint_rect


@pytest.fixture
def pages_factory():
    return make_pages
