from pydantic import BaseModel

from app.schemas.user import UserRead


# -------------------------------------------------------------------
# LOGIN REQUEST (email, or roll number for students)
# -------------------------------------------------------------------
class LoginRequest(BaseModel):
    identifier: str
    password: str


# -------------------------------------------------------------------
# TOKEN + USER RESPONSE
# -------------------------------------------------------------------
class TokenWithUser(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
