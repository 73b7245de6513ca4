import pytest

from qc_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from qc_tracker.models.enums import ActionType, LaptopStatus
from qc_tracker.models.history import HistoryLog
from qc_tracker.models.laptop import Laptop
from qc_tracker.services.laptop import LaptopService, resolve_sort


def register(db, user, serial, model=None, brand=None):
    return LaptopService(db).create_laptop(
        {"serial_number": serial, "model": model, "brand": brand}, user, "10.0.0.1"
    )


def test_create_laptop_starts_pending_and_logs_history(db, staff_user):
    laptop = register(db, staff_user, "SN-100", "ThinkPad L14", "Lenovo")

    assert laptop.id is not None
    assert laptop.status == LaptopStatus.PENDING

    entries = db.query(HistoryLog).filter(HistoryLog.laptop_id == laptop.id).all()
    assert len(entries) == 1
    assert entries[0].action_type == ActionType.STATUS_CHANGE
    assert entries[0].new_status == LaptopStatus.PENDING
    assert entries[0].ip_address == "10.0.0.1"


def test_create_duplicate_serial_is_a_conflict(db, staff_user):
    register(db, staff_user, "SN-002")

    with pytest.raises(ConflictError):
        register(db, staff_user, "SN-002")

    assert db.query(Laptop).filter(Laptop.serial_number == "SN-002").count() == 1


def test_create_requires_serial(db, staff_user):
    with pytest.raises(ValidationError):
        register(db, staff_user, "   ")


def test_find_by_serial_is_exact_and_case_sensitive(db, staff_user):
    register(db, staff_user, "SN-Case")
    service = LaptopService(db)

    assert service.find_by_serial("SN-Case")["serial_number"] == "SN-Case"
    with pytest.raises(NotFoundError):
        service.find_by_serial("sn-case")
    with pytest.raises(NotFoundError):
        service.find_by_serial("SN-Ca")


def test_search_is_case_insensitive_substring_across_fields(db, staff_user):
    register(db, staff_user, "SN-A1", "ThinkPad L14", "Lenovo")
    register(db, staff_user, "SN-B2", "Latitude 5440", "Dell")
    register(db, staff_user, "XYZ-think", "ProBook", "HP")

    result = LaptopService(db).search_laptops(search="Think")
    serials = {row["serial_number"] for row in result["laptops"]}

    assert serials == {"SN-A1", "XYZ-think"}
    assert result["total_count"] == 2

    by_brand = LaptopService(db).search_laptops(search="dell")
    assert [row["serial_number"] for row in by_brand["laptops"]] == ["SN-B2"]


def test_search_treats_wildcards_literally(db, staff_user):
    register(db, staff_user, "SN_1")
    register(db, staff_user, "SNX1")
    register(db, staff_user, "SN%2")

    service = LaptopService(db)

    assert [row["serial_number"] for row in service.search_laptops(search="SN_1")["laptops"]] == ["SN_1"]
    assert [row["serial_number"] for row in service.search_laptops(search="N%")["laptops"]] == ["SN%2"]


def test_search_status_filter_is_exact(db, staff_user):
    a = register(db, staff_user, "SN-1")
    register(db, staff_user, "SN-2")
    LaptopService(db).update_laptop(a.id, {"status": "perlu_perbaikan"}, staff_user)

    result = LaptopService(db).search_laptops(status="perlu_perbaikan")

    assert [row["serial_number"] for row in result["laptops"]] == ["SN-1"]


def test_search_rejects_unknown_status(db, staff_user):
    with pytest.raises(ValidationError):
        LaptopService(db).search_laptops(status="broken")


def test_search_paginates(db, staff_user):
    for i in range(5):
        register(db, staff_user, f"SN-P{i}")

    result = LaptopService(db).search_laptops(page=2, per_page=2, sort_by="serial_number", sort_order="asc")

    assert [row["serial_number"] for row in result["laptops"]] == ["SN-P2", "SN-P3"]
    assert result["total_count"] == 5
    assert result["total_pages"] == 3


def test_unknown_sort_column_falls_back_to_created_at_desc():
    fallback = resolve_sort("serial_number; DROP TABLE laptops", "asc")

    assert str(fallback) == str(Laptop.created_at.desc())
    assert str(resolve_sort("brand", "asc")) == str(Laptop.brand.asc())


def test_update_merges_only_supplied_fields(db, staff_user):
    laptop = register(db, staff_user, "SN-M", "ThinkPad", "Lenovo")

    updated = LaptopService(db).update_laptop(laptop.id, {"model": "ThinkPad T14", "brand": None}, staff_user)

    assert updated.model == "ThinkPad T14"
    assert updated.brand == "Lenovo"
    assert updated.serial_number == "SN-M"


def test_update_to_used_serial_is_a_conflict(db, staff_user):
    register(db, staff_user, "SN-X")
    other = register(db, staff_user, "SN-Y")

    with pytest.raises(ConflictError):
        LaptopService(db).update_laptop(other.id, {"serial_number": "SN-X"}, staff_user)

    db.expire_all()
    assert LaptopService(db).get_laptop_by_id(other.id).serial_number == "SN-Y"


def test_update_unknown_laptop_is_not_found(db, staff_user):
    with pytest.raises(NotFoundError):
        LaptopService(db).update_laptop(999, {"model": "x"}, staff_user)


def test_update_without_changes_writes_no_history(db, staff_user):
    laptop = register(db, staff_user, "SN-N", "ThinkPad")

    LaptopService(db).update_laptop(laptop.id, {"model": "ThinkPad"}, staff_user)

    assert db.query(HistoryLog).filter(HistoryLog.laptop_id == laptop.id).count() == 1


def test_status_can_be_set_to_in_repair(db, staff_user):
    laptop = register(db, staff_user, "SN-R")

    updated = LaptopService(db).update_laptop(laptop.id, {"status": "dalam_perbaikan"}, staff_user)

    assert updated.status == LaptopStatus.IN_REPAIR
    last = (
        db.query(HistoryLog)
        .filter(HistoryLog.laptop_id == laptop.id)
        .order_by(HistoryLog.id.desc())
        .first()
    )
    assert last.previous_status == LaptopStatus.PENDING
    assert last.new_status == LaptopStatus.IN_REPAIR


def test_qr_code_is_png_named_after_serial(db, staff_user):
    laptop = register(db, staff_user, "SN/QR")

    buffer, filename = LaptopService(db).generate_qr_code(laptop.id, "http://qc.example.test/")

    assert filename == "QR_SN-QR.png"
    assert buffer.getvalue().startswith(b"\x89PNG")
