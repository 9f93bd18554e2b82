from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.core.config import settings
from prflow.core.deps import get_current_user
from prflow.core.limiter import limiter
from prflow.core.security import create_access_token, verify_password
from prflow.db.session import get_session
from prflow.models.user import User
from prflow.schemas.auth import Token, UserOut

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    """Exchange email (or employee code) and password for a bearer token."""
    result = await db.execute(
        select(User).where(
            or_(User.email == form.username, User.emp_code == form.username),
            User.deleted_at.is_(None),
        )
    )
    user = result.scalars().first()
    if not user or not verify_password(form.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    token = create_access_token(subject=str(user.id), role=user.role, emp_code=user.emp_code)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
