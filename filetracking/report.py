"""PDF report rendering for File Tracking.

Draws A4 pages with Pillow and saves them as a multi-page PDF.  Each
page carries the report title and date, the tracked-files table with
its column headings, and a footer with the generation time and page
number.  The totals follow the last table row.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageDraw, ImageFont
from PIL.Image import Image as PILImage

from filetracking.dataset import ReportDataset
from filetracking.platform_utils import get_report_font_candidates

logger = logging.getLogger(__name__)

_SIZE_SUFFIXES = ("B", "KB", "MB", "GB", "TB")

# A4 at 150 dpi
_DPI = 150
_PAGE_SIZE = (1240, 1754)
_MARGIN = 118  # 2 cm


def _pt(points: float) -> int:
    """Convert typographic points to pixels at the page resolution."""
    return round(points * _DPI / 72)


class ReportRenderer(Protocol):
    """Expected interface for anything that turns a dataset into a file."""

    def render(self, dataset: ReportDataset, output_path: Path) -> None:
        """Write a report for *dataset* to *output_path*."""
        ...


def report_file_name(day: date) -> str:
    """Return the report file name for *day*, e.g. ``FileReport_2024-05-01.pdf``."""
    return f"FileReport_{day:%Y-%m-%d}.pdf"


def format_file_size(size: int) -> str:
    """Format a byte count as e.g. ``1.50 KB`` or ``2,048.00 TB``."""
    number = float(size)
    counter = 0
    while round(number / 1024) >= 1 and counter < len(_SIZE_SUFFIXES) - 1:
        number /= 1024
        counter += 1
    return f"{number:,.2f} {_SIZE_SUFFIXES[counter]}"


def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for candidate in get_report_font_candidates():
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _fit(text: str, font, width: int) -> str:
    """Truncate *text* with an ellipsis so it fits in *width* pixels."""
    if font.getlength(text) <= width:
        return text
    while text and font.getlength(text + "...") > width:
        text = text[:-1]
    return text + "..."


class PdfReportRenderer:
    """Renders the daily file report as a PDF."""

    def __init__(self) -> None:
        self._title_font = _load_font(_pt(20))
        self._subtitle_font = _load_font(_pt(14))
        self._date_font = _load_font(_pt(12))
        self._body_font = _load_font(_pt(11))
        self._row_height = _pt(11) + 14

        content_width = _PAGE_SIZE[0] - 2 * _MARGIN
        index_width = _pt(30)
        unit = (content_width - index_width) / 7  # name 3 : size 2 : modified 2
        self._columns = [
            (_MARGIN, index_width),
            (_MARGIN + index_width, round(unit * 3)),
            (_MARGIN + index_width + round(unit * 3), round(unit * 2)),
            (_MARGIN + index_width + round(unit * 5), round(unit * 2)),
        ]

    # ---- layout ----

    def _header_bottom(self) -> int:
        return _MARGIN + _pt(20) + _pt(12) + 30

    def _footer_top(self) -> int:
        return _PAGE_SIZE[1] - _MARGIN - _pt(11)

    def _paginate(self, count: int) -> list[range]:
        """Split row indices into pages; the totals need room on the last one."""
        first_top = self._header_bottom() + _pt(14) + 20
        other_top = self._header_bottom()
        bottom = self._footer_top() - 20
        summary_height = 20 + 2 * self._row_height

        pages: list[range] = []
        start = 0
        top = first_top
        while True:
            capacity = max(1, (bottom - top) // self._row_height - 1)  # minus heading row
            end = min(count, start + capacity)
            pages.append(range(start, end))
            used = top + (end - start + 1) * self._row_height
            if end == count:
                if used + summary_height > bottom and end > start:
                    pages.append(range(end, end))
                return pages
            start = end
            top = other_top

    # ---- drawing ----

    def _draw_header(self, draw: ImageDraw.ImageDraw, report_day: date) -> None:
        draw.text((_MARGIN, _MARGIN), "File Tracking Report", fill="black",
                  font=self._title_font)
        draw.text((_MARGIN, _MARGIN + _pt(20) + 10),
                  f"Report Date: {report_day:%Y-%m-%d}", fill="black",
                  font=self._date_font)

    def _draw_row(self, draw: ImageDraw.ImageDraw, y: int, cells: list[str]) -> None:
        for (x, width), text in zip(self._columns, cells):
            draw.text((x, y), _fit(text, self._body_font, width - 8), fill="black",
                      font=self._body_font)

    def _draw_footer(self, draw: ImageDraw.ImageDraw, generated: datetime,
                     page: int, total: int) -> None:
        text = f"Generated on {generated:%Y-%m-%d %H:%M:%S} | Page {page} of {total}"
        width = self._body_font.getlength(text)
        x = (_PAGE_SIZE[0] - width) / 2
        draw.text((x, self._footer_top()), text, fill="black", font=self._body_font)

    def _draw_page(
        self,
        dataset: ReportDataset,
        rows: range,
        page: int,
        total: int,
        generated: datetime,
    ) -> PILImage:
        img = Image.new("RGB", _PAGE_SIZE, "white")
        draw = ImageDraw.Draw(img)
        self._draw_header(draw, generated.date())

        y = self._header_bottom()
        if page == 1:
            draw.text((_MARGIN, y), "Tracked Files", fill="black",
                      font=self._subtitle_font)
            y += _pt(14) + 20

        if len(rows) or page == 1:
            self._draw_row(draw, y, ["#", "File Name", "Size", "Last Modified"])
            y += self._row_height
            draw.line([(_MARGIN, y - 6), (_PAGE_SIZE[0] - _MARGIN, y - 6)],
                      fill="black", width=2)

        for i in rows:
            entry = dataset.entries[i]
            modified = entry.last_modified()
            self._draw_row(draw, y, [
                str(i + 1),
                entry.name,
                format_file_size(entry.size),
                modified.strftime("%Y-%m-%d %H:%M:%S") if modified else "Unknown",
            ])
            y += self._row_height

        if page == total:
            y += 20
            draw.text((_MARGIN, y), f"Total Files: {dataset.count}", fill="black",
                      font=self._body_font)
            y += self._row_height
            draw.text((_MARGIN, y), f"Total Size: {format_file_size(dataset.total_size)}",
                      fill="black", font=self._body_font)

        self._draw_footer(draw, generated, page, total)
        return img

    def render(self, dataset: ReportDataset, output_path: Path) -> None:
        """Render *dataset* to a PDF at *output_path*, overwriting it."""
        output_path = Path(output_path)
        generated = datetime.now()
        layout = self._paginate(dataset.count)
        pages = [
            self._draw_page(dataset, rows, number, len(layout), generated)
            for number, rows in enumerate(layout, start=1)
        ]
        pages[0].save(
            str(output_path),
            "PDF",
            resolution=float(_DPI),
            save_all=True,
            append_images=pages[1:],
        )
        logger.info("PDF report generated successfully: %s (%d page(s))",
                    output_path, len(pages))
