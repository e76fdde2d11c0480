from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sugar.database import Base
from sugar.models.forum_model import utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    realname = Column(String(200), nullable=True)
    description = Column(String, nullable=True)

    # role flags
    admin = Column(Boolean, default=False, nullable=False, server_default="0")
    user_admin = Column(Boolean, default=False, nullable=False, server_default="0")
    moderator = Column(Boolean, default=False, nullable=False, server_default="0")
    trusted = Column(Boolean, default=False, nullable=False, server_default="0")

    # counter caches
    discussions_count = Column(Integer, default=0, nullable=False, server_default="0")
    posts_count = Column(Integer, default=0, nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
    last_active = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_moderator(self) -> bool:
        return bool(self.moderator or self.admin)

    @property
    def is_user_admin(self) -> bool:
        return bool(self.user_admin or self.admin)

    @property
    def is_trusted(self) -> bool:
        """Trusted users and all kinds of admins may see trusted threads."""
        return bool(self.trusted or self.admin or self.user_admin or self.moderator)
