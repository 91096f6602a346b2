from pydantic import BaseModel, Field

from billtrack.models.user import UserRole


# ── User creation (owner / manager creates a user) ──────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.STAFF
    department_id: str | None = None


class UserOut(BaseModel):
    id: str
    username: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    department_id: str | None

    model_config = {"from_attributes": True}


# ── Login ────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
