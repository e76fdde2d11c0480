from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sugar.database import get_async_session
from sugar.errors import NotFoundError
from sugar.models.user_model import User
from sugar.schemas.user_schemas import UserOut

router = APIRouter(prefix="/users", tags=["users"])


def user_to_out(u: User) -> UserOut:
    # explicit whitelist: new columns never leak out by default
    return UserOut(
        id=u.id,
        username=u.username,
        realname=u.realname,
        description=u.description,
        admin=bool(u.admin),
        moderator=bool(u.moderator),
        user_admin=bool(u.user_admin),
        posts_count=u.posts_count or 0,
        discussions_count=u.discussions_count or 0,
        created_at=str(u.created_at) if u.created_at else None,
        last_active=str(u.last_active) if u.last_active else None,
    )


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, db: AsyncSession = Depends(get_async_session)):
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user_to_out(user)
