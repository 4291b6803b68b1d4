import jwt
from fastapi import APIRouter, Cookie, HTTPException, Response, status
from loguru import logger
from sqlalchemy import select

from harmony.config import settings
from harmony.dependencies import (
    DbSession,
    create_access_token,
    create_refresh_token,
)
from harmony.models.user import User
from harmony.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    RegisterRequest,
)

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE_NAME = "harmony_refresh_token"
# The refresh cookie is only ever sent back to the auth endpoints.
_COOKIE_SCOPE = {"httponly": True, "secure": True, "samesite": "none", "path": "/auth"}


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _issue_tokens(response: Response, user: User) -> AccessTokenResponse:
    """Rotate the refresh cookie and return a fresh access token for ``user``."""
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        create_refresh_token(user),
        max_age=settings.refresh_token_expire_days * 86400,
        **_COOKIE_SCOPE,
    )
    return AccessTokenResponse(access_token=create_access_token(user))


def _user_for_refresh_token(token: str, db) -> User:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        raise _unauthorized()
    if claims.get("type") != "refresh":
        raise _unauthorized()
    user: User | None = db.get(User, int(claims["sub"]))
    if user is None or not user.is_active:
        raise _unauthorized()
    return user


def _find_by_email(email: str, db) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


@router.post("/login", response_model=AccessTokenResponse)
def login(request: LoginRequest, response: Response, db: DbSession):
    user = _find_by_email(request.email, db)
    if user is None or not user.is_active or not user.check_password(request.password):
        raise _unauthorized()
    return _issue_tokens(response, user)


@router.post(
    "/register",
    response_model=AccessTokenResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(request: RegisterRequest, response: Response, db: DbSession):
    """Create an account and sign it in straight away.

    Raises:
        HTTPException: 409 if the email is already registered.
    """
    if _find_by_email(request.email, db) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already registered.",
        )

    user = User(email=request.email, name=request.name, title=request.title, password_hash="")
    user.set_password(request.password)
    db.add(user)
    db.flush()
    logger.info("Registered user {}", user.id)
    return _issue_tokens(response, user)


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    response: Response,
    db: DbSession,
    harmony_refresh_token: str | None = Cookie(default=None),
):
    if harmony_refresh_token is None:
        raise _unauthorized()
    return _issue_tokens(response, _user_for_refresh_token(harmony_refresh_token, db))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    response.delete_cookie(REFRESH_COOKIE_NAME, **_COOKIE_SCOPE)
