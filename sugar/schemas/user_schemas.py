from pydantic import BaseModel
from typing import Optional

class UserOut(BaseModel):
    # public profile fields only; role flags beyond these stay private
    id: int
    username: str
    realname: Optional[str] = None
    description: Optional[str] = None
    admin: bool = False
    moderator: bool = False
    user_admin: bool = False
    posts_count: int = 0
    discussions_count: int = 0
    created_at: Optional[str] = None
    last_active: Optional[str] = None
