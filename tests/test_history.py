from datetime import datetime, timedelta, timezone

from qc_tracker.models.enums import ActionType, LaptopStatus
from qc_tracker.services.history import HistoryService
from qc_tracker.services.laptop import LaptopService
from qc_tracker.services.qc import QCService


def test_append_is_staged_until_commit(db, staff_user):
    history = HistoryService(db)
    history.append(user_id=staff_user["user_id"], action="login", action_type=ActionType.STATUS_CHANGE)

    db.rollback()

    assert history.query_all()["total"] == 0


def test_query_by_laptop_is_most_recent_first_and_paged(db, staff_user):
    laptop = LaptopService(db).create_laptop({"serial_number": "SN-H"}, staff_user)
    for model in ("A", "B", "C"):
        LaptopService(db).update_laptop(laptop.id, {"model": model}, staff_user)

    history = HistoryService(db)
    entries = history.query_by_laptop(laptop.id)

    assert len(entries) == 4
    assert entries[0]["action"].endswith("-> C")
    assert entries[-1]["new_status"] == LaptopStatus.PENDING
    assert entries[0]["user_name"] == "Quality Control Staff"
    assert entries[0]["serial_number"] == "SN-H"

    page = history.query_by_laptop(laptop.id, limit=2, offset=2)
    assert [e["id"] for e in page] == [e["id"] for e in entries[2:4]]


def test_query_all_filters(db, staff_user, leader_user):
    QCService(db).start_session("SN-Q1", staff_user)
    QCService(db).start_session("SN-Q2", leader_user)
    LaptopService(db).create_laptop({"serial_number": "SN-Q3"}, leader_user)

    history = HistoryService(db)

    assert history.query_all()["total"] == 3
    assert history.query_all(action_type=ActionType.QC_START)["total"] == 2
    assert history.query_all(user_id=leader_user["user_id"])["total"] == 2

    by_user_and_type = history.query_all(user_id=leader_user["user_id"], action_type=ActionType.QC_START)
    assert [log["serial_number"] for log in by_user_and_type["logs"]] == ["SN-Q2"]

    tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
    assert history.query_all(start_date=tomorrow)["total"] == 0


def test_query_all_limit_keeps_total(db, staff_user):
    for i in range(4):
        LaptopService(db).create_laptop({"serial_number": f"SN-T{i}"}, staff_user)

    result = HistoryService(db).query_all(limit=3)

    assert result["total"] == 4
    assert len(result["logs"]) == 3
    assert result["logs"][0]["serial_number"] == "SN-T3"


def test_recent_returns_latest_ten(db, staff_user):
    for i in range(12):
        LaptopService(db).create_laptop({"serial_number": f"SN-R{i:02d}"}, staff_user)

    recent = HistoryService(db).recent()

    assert len(recent) == 10
    assert recent[0]["serial_number"] == "SN-R11"
