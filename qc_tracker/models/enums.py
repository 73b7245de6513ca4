from enum import Enum
from typing import Type

from sqlalchemy import Column, Enum as SAEnum


class LaptopStatus(str, Enum):
    PENDING = "pending"
    IN_QC = "dalam_qc"
    PASSED_QC = "lulus_qc"
    NEEDS_REPAIR = "perlu_perbaikan"
    IN_REPAIR = "dalam_perbaikan"


class SessionOutcome(str, Enum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionOutcome.PENDING


class ItemStatus(str, Enum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"


class ChecklistCategory(str, Enum):
    HARDWARE = "hardware"
    SOFTWARE = "software"


class ActionType(str, Enum):
    STATUS_CHANGE = "status_change"
    QC_START = "qc_start"
    QC_COMPLETE = "qc_complete"
    QC_EDIT = "qc_edit"


class UserRole(str, Enum):
    LEADER = "leader"
    STAFF = "staff"


# every outcome a submission can produce must map to a laptop status
LAPTOP_STATUS_BY_OUTCOME = {
    SessionOutcome.PASS: LaptopStatus.PASSED_QC,
    SessionOutcome.FAIL: LaptopStatus.NEEDS_REPAIR,
}


def laptop_status_for(outcome: SessionOutcome) -> LaptopStatus:
    try:
        return LAPTOP_STATUS_BY_OUTCOME[outcome]
    except KeyError:
        raise ValueError(f"Outcome {outcome.value!r} does not decide a laptop status")


def enum_column(name: str, enum_cls: Type[Enum], **kwargs) -> Column:
    """Column storing the enum *values* ("dalam_qc"), not the member names."""
    return Column(
        name,
        SAEnum(
            enum_cls,
            name=enum_cls.__name__.lower(),
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=32,
        ),
        **kwargs,
    )
