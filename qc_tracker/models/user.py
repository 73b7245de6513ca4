from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel, text, Column, DateTime

from qc_tracker.models.enums import UserRole, enum_column


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    username: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    full_name: str = Field(max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)

    role: UserRole = Field(sa_column=enum_column("role", UserRole, nullable=False, index=True))
    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("created_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column("updated_at", DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    )

    def public_dict(self) -> dict:
        return self.model_dump(exclude={"password_hash"})
