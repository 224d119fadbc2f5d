# app/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, String
from sqlalchemy import Enum as SAEnum
from datetime import datetime
import uuid
from enum import Enum
from dataclasses import dataclass
from typing import Optional

from app.core.clock import utcnow

class UserRole(str, Enum):
    Admin = "Admin"
    Student = "Student"
    Warden = "Warden"
    Security = "Security"

class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(nullable=False)
    email: str = Field(nullable=False, index=True, unique=True)
    password_hash: str = Field(nullable=False)

    # Discriminator: the role decides which of the fields below are meaningful
    role: UserRole = Field(
        sa_column=Column(SAEnum(UserRole, name="user_role"), nullable=False)
    )

    # --- Student fields ---
    roll_number: Optional[str] = Field(
        default=None,
        sa_column=Column(String, nullable=True, unique=True)
    )
    room_number: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    parent_phone: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    # --- Student + Warden: hostel the student lives in / the warden manages ---
    hostel: Optional[str] = Field(
        default=None,
        sa_column=Column(String, nullable=True, index=True)
    )

    # --- Security: gate the officer is posted at ---
    gate: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )


@dataclass(frozen=True)
class ResolvedActor:
    """A user tagged with the role it acts under; role checks branch on `kind`."""
    kind: UserRole
    user: User

    @property
    def id(self) -> uuid.UUID:
        return self.user.id
