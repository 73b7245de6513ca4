import io
import re
from datetime import datetime

from openpyxl import load_workbook

from qc_tracker.services.export import DETAIL_SHEET, SUMMARY_SHEET, ExportService

REPORT = {
    "summary": {"total": 3, "passed": 1, "needsRepair": 1, "inRepair": 1},
    "records": [
        {
            "serial_number": "SN-001",
            "model": "ThinkPad L14",
            "brand": "Lenovo",
            "status": "perlu_perbaikan",
            "notes": "LCD redup",
            "qc_date": datetime(2026, 3, 4, 10, 30),
            "qc_officer": "Budi",
        },
        {
            "serial_number": "SN-002",
            "model": None,
            "brand": None,
            "status": "pending",
            "notes": None,
            "qc_date": None,
            "qc_officer": None,
        },
    ],
}


def test_excel_has_summary_and_detail_sheets():
    output = ExportService().export_to_excel(REPORT)
    workbook = load_workbook(io.BytesIO(output.getvalue()))

    assert workbook.sheetnames == [SUMMARY_SHEET, DETAIL_SHEET]

    summary = workbook[SUMMARY_SHEET]
    assert [cell.value for cell in summary[1]] == ["Kategori", "Jumlah"]
    assert [(row[0].value, row[1].value) for row in summary.iter_rows(min_row=2)] == [
        ("Total QC", 3),
        ("Lulus QC", 1),
        ("Perlu Perbaikan", 1),
        ("Dalam Perbaikan", 1),
    ]

    detail = workbook[DETAIL_SHEET]
    assert [cell.value for cell in detail[1]] == [
        "No", "Serial Number", "Model", "Brand", "Status", "QC Officer", "Tanggal QC", "Catatan",
    ]
    assert [cell.value for cell in detail[2]] == [
        1, "SN-001", "ThinkPad L14", "Lenovo", "perlu_perbaikan", "Budi", "2026-03-04", "LCD redup",
    ]
    assert [cell.value for cell in detail[3]][1:] == ["SN-002", "-", "-", "pending", "-", "-", "-"]
    assert len(detail.tables) == 1


def test_excel_without_records_is_still_a_workbook():
    output = ExportService().export_to_excel({"summary": {}, "records": []})
    workbook = load_workbook(io.BytesIO(output.getvalue()))

    assert workbook[DETAIL_SHEET].max_row == 1
    assert workbook[SUMMARY_SHEET]["B2"].value == 0


def test_pdf_is_rendered():
    output = ExportService().export_to_pdf(REPORT)
    content = output.getvalue()

    assert content.startswith(b"%PDF")
    assert content.rstrip().endswith(b"%%EOF")


def test_pdf_paginates_long_reports():
    records = [dict(REPORT["records"][0], serial_number=f"SN-{i:04d}") for i in range(200)]

    short = ExportService().export_to_pdf({"summary": REPORT["summary"], "records": records[:5]}).getvalue()
    long = ExportService().export_to_pdf({"summary": REPORT["summary"], "records": records}).getvalue()

    page_marker = re.compile(rb"/Type\s*/Page\b")
    assert len(page_marker.findall(short)) == 1
    assert len(page_marker.findall(long)) > 1
    assert long.startswith(b"%PDF")
