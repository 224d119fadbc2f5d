from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr
from app.models.user import UserRole


# ---------------------------------------------------------
# BASE
# ---------------------------------------------------------
class UserBase(BaseModel):
    name: str
    email: EmailStr


# ---------------------------------------------------------
# CREATE USER (Admin creates any user)
# ---------------------------------------------------------
class UserCreate(UserBase):
    password: str
    role: UserRole

    # Student only
    roll_number: Optional[str] = None
    room_number: Optional[str] = None
    parent_phone: Optional[str] = None

    # Student / Warden
    hostel: Optional[str] = None

    # Security only
    gate: Optional[str] = None

    phone: Optional[str] = None

    class Config:
        json_schema_extra = {
            "examples": [
                {
                    "name": "Hostel Warden",
                    "email": "warden@example.com",
                    "password": "password123",
                    "role": "Warden",
                    "hostel": "Block A"
                },
                {
                    "name": "Student User",
                    "email": "student@example.com",
                    "password": "password123",
                    "role": "Student",
                    "roll_number": "21CS042",
                    "hostel": "Block A",
                    "room_number": "A-114"
                }
            ]
        }


# ---------------------------------------------------------
# READ USER (response)
# ---------------------------------------------------------
class UserRead(UserBase):
    id: UUID
    role: UserRole | str
    roll_number: Optional[str] = None
    hostel: Optional[str] = None
    room_number: Optional[str] = None
    phone: Optional[str] = None
    gate: Optional[str] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# SUMMARY (embedded in outpass responses)
# ---------------------------------------------------------
class UserSummary(BaseModel):
    id: UUID
    name: str
    roll_number: Optional[str] = None
    hostel: Optional[str] = None
    room_number: Optional[str] = None
    phone: Optional[str] = None
    parent_phone: Optional[str] = None

    class Config:
        from_attributes = True
