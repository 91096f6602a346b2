"""Authentication router.

Endpoints:
    POST /api/auth/login    Username + password → bearer token
    GET  /api/auth/me       Current user
    POST /api/auth/users    Create a user (owner / manager only)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user, require_manager
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.auth import LoginRequest, TokenResponse, UserCreate, UserOut
from billtrack.services import user as user_service

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.authenticate(db, body.username, body.password)


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)


@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_manager),
):
    user = await user_service.create_user(db, body)
    return UserOut.model_validate(user)
