from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel, text, Column, String, DateTime

from qc_tracker.models.enums import LaptopStatus, enum_column


class Laptop(SQLModel, table=True):
    __tablename__ = "laptops"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    # uniqueness lives in the database so concurrent QC starts cannot double-insert
    serial_number: str = Field(
        sa_column=Column("serial_number", String(255), nullable=False, unique=True, index=True)
    )
    model: Optional[str] = Field(default=None, max_length=255)
    brand: Optional[str] = Field(default=None, max_length=255)
    specifications: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column("specifications", JSON))
    status: LaptopStatus = Field(
        default=LaptopStatus.PENDING,
        sa_column=enum_column("status", LaptopStatus, nullable=False, index=True),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("created_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("updated_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")),
    )
