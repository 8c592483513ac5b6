# export_manager.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from PySide6.QtCore import QLineF, QMarginsF, QRectF, QSizeF, Qt
from PySide6.QtGui import QColor, QPageLayout, QPageSize, QPainter, QPdfWriter, QPen

from cardgrid.config import EXTRACTION_DPI
from cardgrid.errors import CardGridError, RenderError
from cardgrid.models.settings import OutputSettings
from cardgrid.services.calibration import calibration_card_layout
from cardgrid.services.card_pipeline import CardPipeline

logger = logging.getLogger(__name__)


@dataclass
class ExportReport:
    path: Path
    exported: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def _open_writer(pdf_path: Path, output: OutputSettings):
    """A PDF writer whose device pixels are extraction-DPI pixels, zero margins."""
    writer = QPdfWriter(str(pdf_path))
    writer.setPageSize(QPageSize(QSizeF(*output.page_size), QPageSize.Inch))
    writer.setPageMargins(QMarginsF(0, 0, 0, 0), QPageLayout.Point)
    writer.setResolution(EXTRACTION_DPI)

    painter = QPainter(writer)
    if not painter.isActive():
        raise RenderError(f"Cannot write PDF to {pdf_path}")
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
    return writer, painter


def _inches(rect: QRectF) -> QRectF:
    return QRectF(rect.x() * EXTRACTION_DPI, rect.y() * EXTRACTION_DPI,
                  rect.width() * EXTRACTION_DPI, rect.height() * EXTRACTION_DPI)


class ExportManager:
    """Writes processed cards to PDF, one card per output page."""

    def __init__(self, pipeline: CardPipeline):
        self.pipeline = pipeline

    def export_pdf(self, pdf_path, indices: Optional[Iterable[int]] = None, side=None) -> ExportReport:
        """
        Export cards to *pdf_path*.

        *indices* are global card indices, or indices among *side*'s cards
        when a side is given; by default every card is exported. A card that
        fails is recorded in the report and the export carries on.
        """
        pdf_path = Path(pdf_path)
        report = ExportReport(path=pdf_path)
        if indices is None:
            count = self.pipeline.total_cards if side is None else len(self.pipeline.side_indices(side))
            indices = range(count)

        writer = painter = None
        page_size = None
        try:
            for index in indices:
                try:
                    entry = self.pipeline.process(index, side)
                    output = self.pipeline.output_for(index, side)
                except CardGridError as exc:
                    message = f"Card {index + 1}: {exc}"
                    report.warnings.append(message)
                    logger.warning("Export skipped %s", message)
                    continue

                # page size follows the card's group
                if writer is None:
                    writer, painter = _open_writer(pdf_path, output)
                else:
                    if output.page_size != page_size:
                        writer.setPageSize(QPageSize(QSizeF(*output.page_size), QPageSize.Inch))
                    writer.newPage()
                page_size = output.page_size
                render = entry.render_data
                p = render.placement
                painter.drawImage(_inches(QRectF(p.x, p.y, p.width, p.height)), render.image)
                report.exported += 1
            if writer is None:
                writer, painter = _open_writer(pdf_path, self.pipeline.output)
        finally:
            if painter is not None:
                painter.end()

        if not report.exported:
            logger.warning("No cards were exported to %s", pdf_path)
        logger.info("Exported %d card(s) to %s with %d warning(s)",
                    report.exported, pdf_path, len(report.warnings))
        return report


def export_calibration_pdf(pdf_path, output: OutputSettings) -> Path:
    """Single-page calibration sheet laid out with *output*'s card size, offset and scale."""
    pdf_path = Path(pdf_path)
    layout = calibration_card_layout(
        card_width=output.card_size[0],
        card_height=output.card_size[1],
        page_width=output.page_size[0],
        page_height=output.page_size[1],
        offset_horizontal=output.offset[0],
        offset_vertical=output.offset[1],
        scale_percent=output.card_scale_percent,
    )
    writer, painter = _open_writer(pdf_path, output)  # writer must outlive the painter
    try:
        painter.setPen(QPen(QColor(200, 200, 200), 0.01 * EXTRACTION_DPI))
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(_inches(layout.card))

        painter.setPen(QPen(QColor(0, 0, 0), 0.04 * EXTRACTION_DPI))
        for line in layout.crosshair:
            painter.drawLine(QLineF(line.x1() * EXTRACTION_DPI, line.y1() * EXTRACTION_DPI,
                                    line.x2() * EXTRACTION_DPI, line.y2() * EXTRACTION_DPI))
    finally:
        painter.end()
    logger.info("Wrote calibration sheet to %s", pdf_path)
    return pdf_path
