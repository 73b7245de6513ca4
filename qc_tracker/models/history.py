from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel, text, Column, DateTime

from qc_tracker.models.enums import ActionType, LaptopStatus, enum_column


class HistoryLog(SQLModel, table=True):
    __tablename__ = "history_logs"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)

    laptop_id: Optional[int] = Field(default=None, foreign_key="laptops.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)

    action: str = Field(max_length=500)
    action_type: ActionType = Field(sa_column=enum_column("action_type", ActionType, nullable=False, index=True))
    previous_status: Optional[LaptopStatus] = Field(
        default=None, sa_column=enum_column("previous_status", LaptopStatus, nullable=True)
    )
    new_status: Optional[LaptopStatus] = Field(
        default=None, sa_column=enum_column("new_status", LaptopStatus, nullable=True)
    )
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column("details", JSON))
    ip_address: Optional[str] = Field(default=None, max_length=45)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("created_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), index=True)
    )
