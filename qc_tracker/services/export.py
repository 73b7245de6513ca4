import io
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

SUMMARY_SHEET = "Ringkasan"
DETAIL_SHEET = "Detail QC"
REPORT_TITLE = "LAPORAN QUALITY CONTROL LAPTOP"

SUMMARY_LABELS = (
    ("total", "Total QC"),
    ("passed", "Lulus QC"),
    ("needsRepair", "Perlu Perbaikan"),
    ("inRepair", "Dalam Perbaikan"),
)

HEADER_FILL = PatternFill(start_color="FF4472C4", end_color="FF4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFFFF", bold=True)
THIN = Side(style="thin")

# (header, record key, width in mm) for the PDF detail table
PDF_COLUMNS = (
    ("Serial Number", "serial_number", 38),
    ("Model", "model", 40),
    ("Status", "status", 32),
    ("QC Officer", "qc_officer", 40),
    ("Tanggal", "qc_date", 30),
)


def _format_date(value: Any, with_time: bool = False) -> str:
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M' if with_time else '%Y-%m-%d')
    if isinstance(value, date):
        return value.strftime('%Y-%m-%d')
    return value or '-'


def _adjust_column_widths(worksheet) -> None:
    for column_cells in worksheet.columns:
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column_cells)
        worksheet.column_dimensions[column_cells[0].column_letter].width = min(max_length + 2, 50)


class ExportService:
    """Renders report data ({"summary": ..., "records": [...]}) as Excel or PDF."""

    def build_detail_rows(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = []
        for index, record in enumerate(records, start=1):
            rows.append({
                'No': index,
                'Serial Number': record.get('serial_number') or '-',
                'Model': record.get('model') or '-',
                'Brand': record.get('brand') or '-',
                'Status': record.get('status') or '-',
                'QC Officer': record.get('qc_officer') or '-',
                'Tanggal QC': _format_date(record.get('qc_date')),
                'Catatan': record.get('notes') or '-',
            })
        return rows

    def export_to_excel(self, data: Dict[str, Any]) -> io.BytesIO:
        summary = data.get("summary") or {}
        summary_df = pd.DataFrame(
            [{'Kategori': label, 'Jumlah': summary.get(key, 0) or 0} for key, label in SUMMARY_LABELS]
        )
        detail_df = pd.DataFrame(
            self.build_detail_rows(data.get("records") or []),
            columns=['No', 'Serial Number', 'Model', 'Brand', 'Status', 'QC Officer', 'Tanggal QC', 'Catatan'],
        )

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            summary_df.to_excel(writer, sheet_name=SUMMARY_SHEET, index=False)
            detail_df.to_excel(writer, sheet_name=DETAIL_SHEET, index=False)

            summary_sheet = writer.sheets[SUMMARY_SHEET]
            for cell in summary_sheet[1]:
                cell.fill = HEADER_FILL
                cell.font = HEADER_FONT
            for row in summary_sheet.iter_rows():
                for cell in row:
                    cell.border = Border(top=THIN, left=THIN, bottom=THIN, right=THIN)

            detail_sheet = writer.sheets[DETAIL_SHEET]
            num_rows, num_cols = detail_df.shape

            # an Excel table needs at least one data row
            if num_rows:
                table_ref = f"A1:{get_column_letter(num_cols)}{num_rows + 1}"
                table = Table(displayName=f"DetailQC_{datetime.now().strftime('%Y%m%d%H%M%S')}", ref=table_ref)
                table.tableStyleInfo = TableStyleInfo(
                    name="TableStyleMedium9",
                    showFirstColumn=False,
                    showLastColumn=False,
                    showRowStripes=True,
                    showColumnStripes=False,
                )
                detail_sheet.add_table(table)
            else:
                for cell in detail_sheet[1]:
                    cell.fill = HEADER_FILL
                    cell.font = HEADER_FONT

            _adjust_column_widths(summary_sheet)
            _adjust_column_widths(detail_sheet)

        output.seek(0)
        return output

    def export_to_pdf(self, data: Dict[str, Any], printed_at: Optional[datetime] = None) -> io.BytesIO:
        printed_at = printed_at or datetime.now()
        buffer = io.BytesIO()

        page_width, page_height = A4
        margin = 18 * mm
        line_height = 6 * mm

        c = canvas.Canvas(buffer, pagesize=A4)
        c.setTitle(REPORT_TITLE)

        y = page_height - margin
        c.setFont("Helvetica-Bold", 16)
        c.drawCentredString(page_width / 2, y, REPORT_TITLE)
        y -= line_height * 1.5
        c.setFont("Helvetica", 10)
        c.drawCentredString(page_width / 2, y, f"Tanggal: {printed_at.strftime('%Y-%m-%d')}")
        y -= line_height * 2

        summary = data.get("summary")
        if summary:
            c.setFont("Helvetica-Bold", 12)
            c.drawString(margin, y, "RINGKASAN")
            y -= line_height
            c.setFont("Helvetica", 10)
            for key, label in SUMMARY_LABELS:
                c.drawString(margin, y, f"{label}: {summary.get(key, 0) or 0}")
                y -= line_height
            y -= line_height

        records = data.get("records") or []
        if records:
            c.setFont("Helvetica-Bold", 12)
            c.drawString(margin, y, "DETAIL QC RECORDS")
            y -= line_height
            y = self._draw_table_header(c, margin, y)

            for record in records:
                if y < margin + line_height:
                    c.showPage()
                    y = self._draw_table_header(c, margin, page_height - margin)

                c.setFont("Helvetica", 9)
                x = margin
                for _, key, width in PDF_COLUMNS:
                    value = record.get(key)
                    text = _format_date(value) if key == "qc_date" else (value or '-')
                    c.drawString(x, y, self._fit(str(text), width * mm - 2 * mm, "Helvetica", 9))
                    x += width * mm
                y -= line_height * 0.8

        c.setFont("Helvetica", 8)
        c.drawRightString(page_width - margin, margin / 2, f"Dicetak pada: {printed_at.strftime('%Y-%m-%d %H:%M:%S')}")
        c.showPage()
        c.save()

        buffer.seek(0)
        logger.debug(f"Rendered PDF report with {len(records)} records")
        return buffer

    @staticmethod
    def _draw_table_header(c, x_start: float, y: float) -> float:
        c.setFont("Helvetica-Bold", 9)
        x = x_start
        for header, _, width in PDF_COLUMNS:
            c.drawString(x, y, header)
            x += width * mm
        c.line(x_start, y - 1.5 * mm, x, y - 1.5 * mm)
        return y - 6 * mm

    @staticmethod
    def _fit(text: str, max_width: float, font: str, size: int) -> str:
        if stringWidth(text, font, size) <= max_width:
            return text
        while text and stringWidth(text + "...", font, size) > max_width:
            text = text[:-1]
        return text + "..."
