"""
RefreshToken model: server-tracked refresh tokens so we can rotate, revoke and sweep them
Fields:
- token (opaque random value, unique)
- user_id (String(36)) - FK to users.id
- revoked (bool) - only ever flips from False to True
- created_at, expires_at (fixed at creation)
"""
from datetime import datetime

from sqlalchemy import Column, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, UTCDateTime


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    revoked = Column(Boolean, default=False, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"
