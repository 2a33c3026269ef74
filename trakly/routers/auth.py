# trakly/routers/auth.py
import logging
from urllib.parse import urlencode
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trakly.config import settings
from trakly.models.user import User
from trakly.schemas.user import AuthSession, ProfileUpdate, UserCreate, UserLogin, UserResponse
from trakly.database import get_db
from trakly.utils.password import hash_password, verify_password
from trakly.core.security import create_access_token
from trakly.core.auth import get_current_user
from trakly.services.accounts import upsert_google_user, user_response
from trakly.services.oauth import oauth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def issue_session(db: AsyncSession, user: User) -> AuthSession:
    return AuthSession(
        token=create_access_token({"sub": str(user.id)}),
        user=await user_response(db, user),
    )


@router.post("/signup", response_model=AuthSession, status_code=status.HTTP_201_CREATED)
async def signup(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == user_in.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=hash_password(user_in.password),
        college=user_in.college,
        year=user_in.year,
        branch=user_in.branch,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return await issue_session(db, user)


@router.post("/login", response_model=AuthSession)
async def login(user_in: UserLogin, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == user_in.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(user_in.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await issue_session(db, user)


@router.post("/refresh", response_model=AuthSession)
async def refresh(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await issue_session(db, current_user)


@router.get("/me", response_model=UserResponse)
async def read_users_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await user_response(db, current_user)


@router.put("/update-profile", response_model=UserResponse)
async def update_profile(
    profile_in: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    changes = profile_in.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    for key, value in changes.items():
        setattr(current_user, key, value)
    db.add(current_user)
    await db.commit()
    await db.refresh(current_user)
    return await user_response(db, current_user)


def _google_client():
    client = oauth.create_client("google")
    if client is None:
        raise HTTPException(status_code=503, detail="Google OAuth not configured")
    return client


@router.get("/google")
async def google_login(request: Request, action: str = "login"):
    client = _google_client()
    request.session["oauth_action"] = "signup" if action == "signup" else "login"
    return await client.authorize_redirect(request, settings.GOOGLE_CALLBACK_URL)


@router.get("/google/callback")
async def google_callback(request: Request, db: AsyncSession = Depends(get_db)):
    client = _google_client()
    frontend = settings.cors_origins[0] if settings.cors_origins else ""
    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.warning("Google OAuth callback rejected: %s", exc.error)
        return RedirectResponse(f"{frontend}/login")

    userinfo = token.get("userinfo") or {}
    google_id, email = userinfo.get("sub"), userinfo.get("email")
    if not google_id or not email:
        logger.warning("Google profile without id or email")
        return RedirectResponse(f"{frontend}/login")

    user = await upsert_google_user(db, google_id, email, userinfo.get("name"))
    params = {"token": create_access_token({"sub": str(user.id)})}
    if request.session.pop("oauth_action", "login") == "signup":
        params["newUser"] = "true"
    return RedirectResponse(f"{frontend}/dashboard?{urlencode(params)}")
