from datetime import datetime, timedelta, timezone

import pytest

from qc_tracker.core.exceptions import ValidationError
from qc_tracker.models.qc import QCSession
from qc_tracker.services.laptop import LaptopService
from qc_tracker.services.qc import QCService
from qc_tracker.services.report import ReportService

OFFICER = {"qc_name": "Budi", "qc_room": "Ruang A", "qc_line": "Line 1", "qc_table": "Meja 3"}


def run_qc(db, user, serial, fail=False, model="ThinkPad L14"):
    service = QCService(db)
    started = service.start_session(serial, user, model=model, brand="Lenovo")
    items = [{"id": item.id, "is_checked": True, "status": "pass"} for item in started["checklist_items"]]
    if fail:
        items[0]["status"] = "fail"
    service.submit_session(started["qc_session"].id, dict(OFFICER, checklist_items=items, notes=f"notes {serial}"), user)
    return started


@pytest.fixture
def populated(db, staff_user, leader_user):
    run_qc(db, staff_user, "SN-P1")
    run_qc(db, staff_user, "SN-P2")
    run_qc(db, leader_user, "SN-F1", fail=True)
    QCService(db).start_session("SN-Q1", staff_user)
    LaptopService(db).create_laptop({"serial_number": "SN-NEW"}, leader_user)
    repair = LaptopService(db).create_laptop({"serial_number": "SN-REP"}, leader_user)
    LaptopService(db).update_laptop(repair.id, {"status": "dalam_perbaikan"}, leader_user)


def test_status_summary_counts_every_status(db, populated):
    summary = ReportService(db).get_status_summary()

    assert summary == {
        "total_laptops": 6,
        "pending": 1,
        "dalam_qc": 1,
        "lulus_qc": 2,
        "perlu_perbaikan": 1,
        "dalam_perbaikan": 1,
    }


def test_today_stats(db, populated):
    today = ReportService(db).get_today_stats()

    assert today == {"total_qc": 4, "passed": 2, "failed": 1}


def test_qc_by_user_tallies_per_officer(db, populated):
    rows = ReportService(db).get_qc_by_user()

    assert [row["user_name"] for row in rows] == ["Quality Control Staff", "Leader Quality Control"]
    assert rows[0]["total_qc"] == 3
    assert rows[0]["passed"] == 2
    assert rows[0]["failed"] == 0
    assert rows[1]["failed"] == 1


def test_qc_by_user_ignores_sessions_older_than_window(db, staff_user):
    started = run_qc(db, staff_user, "SN-OLD")
    qc_session = db.get(QCSession, started["qc_session"].id)
    qc_session.qc_date = datetime.now(timezone.utc) - timedelta(days=45)
    db.commit()

    assert ReportService(db).get_qc_by_user() == []
    assert ReportService(db).get_weekly_trend() == []


def test_weekly_trend_groups_by_day(db, populated):
    trend = ReportService(db).get_weekly_trend()

    assert trend == [{
        "date": datetime.now(timezone.utc).date().isoformat(),
        "total": 4,
        "passed": 2,
        "failed": 1,
    }]


def test_dashboard_bundles_all_sections(db, populated):
    dashboard = ReportService(db).get_dashboard()

    assert set(dashboard) == {"summary", "today", "qc_by_user", "weekly_trend", "recent_activities"}
    assert len(dashboard["recent_activities"]) == 10
    assert dashboard["recent_activities"][0]["serial_number"] == "SN-REP"


def test_report_data_summary_and_records(db, populated):
    today = datetime.now(timezone.utc).date()

    data = ReportService(db).get_report_data(today, today)

    assert data["summary"] == {"total": 6, "passed": 2, "needsRepair": 1, "inRepair": 1}
    # one row per session, plus one per laptop that never went through QC
    assert len(data["records"]) == 6
    by_serial = {record["serial_number"]: record for record in data["records"]}
    assert by_serial["SN-F1"]["status"] == "perlu_perbaikan"
    assert by_serial["SN-F1"]["qc_officer"] == "Leader Quality Control"
    assert by_serial["SN-F1"]["notes"] == "notes SN-F1"
    assert by_serial["SN-NEW"]["qc_date"] is None
    assert set(data["records"][0]) == {"serial_number", "model", "brand", "status", "notes", "qc_date", "qc_officer"}


def test_report_data_outside_range_is_empty(db, populated):
    last_year = datetime.now(timezone.utc).date() - timedelta(days=365)

    data = ReportService(db).get_report_data(last_year, last_year + timedelta(days=1))

    assert data == {"summary": {"total": 0, "passed": 0, "needsRepair": 0, "inRepair": 0}, "records": []}


def test_report_data_rejects_inverted_range(db):
    today = datetime.now(timezone.utc).date()

    with pytest.raises(ValidationError):
        ReportService(db).get_report_data(today, today - timedelta(days=1))
