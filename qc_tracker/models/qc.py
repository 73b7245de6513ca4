from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel, text, Column, DateTime, Text

from qc_tracker.models.enums import ChecklistCategory, ItemStatus, SessionOutcome, enum_column


class QCSession(SQLModel, table=True):
    __tablename__ = "qc_sessions"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    laptop_id: int = Field(foreign_key="laptops.id", index=True)
    qc_user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)

    # officer / station, filled in at submission
    qc_name: Optional[str] = Field(default=None, max_length=255)
    qc_room: Optional[str] = Field(default=None, max_length=100)
    qc_line: Optional[str] = Field(default=None, max_length=100)
    qc_table: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, sa_column=Column("notes", Text))

    overall_status: SessionOutcome = Field(
        default=SessionOutcome.PENDING,
        sa_column=enum_column("overall_status", SessionOutcome, nullable=False, index=True),
    )

    qc_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("qc_date", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), index=True),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("created_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("updated_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")),
    )


class ChecklistItem(SQLModel, table=True):
    __tablename__ = "qc_checklist_items"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    qc_session_id: int = Field(foreign_key="qc_sessions.id", index=True)

    category: ChecklistCategory = Field(sa_column=enum_column("category", ChecklistCategory, nullable=False))
    item_name: str = Field(max_length=255)
    status: ItemStatus = Field(
        default=ItemStatus.PENDING,
        sa_column=enum_column("status", ItemStatus, nullable=False),
    )
    is_checked: bool = Field(default=False)
    notes: Optional[str] = Field(default=None, sa_column=Column("notes", Text))


class Attachment(SQLModel, table=True):
    __tablename__ = "attachments"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    qc_session_id: int = Field(foreign_key="qc_sessions.id", index=True)

    file_name: str = Field(max_length=255)
    file_path: str = Field(max_length=500)
    file_type: str = Field(max_length=100)
    file_size: int
    description: Optional[str] = Field(default=None, max_length=500)
    uploaded_by: Optional[int] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("created_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")),
    )
