from fastapi import APIRouter
from sqlalchemy import select

from harmony.dependencies import CurrentUser, DbSession, get_user_or_404
from harmony.models.user import User
from harmony.schemas.user import UserRead, UserSummary

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserSummary])
def list_users(user: CurrentUser, db: DbSession):
    """List active users other than the caller, for people discovery."""
    users = db.execute(
        select(User)
        .where(User.is_active.is_(True), User.id != user.id)
        .order_by(User.id)
    ).scalars().all()
    return users


@router.get("/me", response_model=UserRead)
def get_me(user: CurrentUser):
    return user


@router.get("/{user_id}", response_model=UserSummary)
def get_user(user_id: int, user: CurrentUser, db: DbSession):
    return get_user_or_404(user_id, db)
