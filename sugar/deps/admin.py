# sugar/deps/admin.py
from fastapi import Depends, HTTPException, status
from sugar.models.user_model import User
from sugar.utils.token_utils import get_current_user

async def require_moderator(user: User = Depends(get_current_user)) -> User:
    """
    Requires the authenticated user to be a moderator (admins count).
    Raises 403 otherwise.
    """
    if not user.is_moderator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator access required"
        )
    return user
