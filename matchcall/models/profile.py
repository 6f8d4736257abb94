"""
Profile Model - Player Identity

Only the columns the calling core needs to resolve an authenticated caller.
Onboarding, game accounts and questionnaire data live elsewhere.
"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime
import uuid

from .database import Base


class Profile(Base):
    """Player profile"""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), unique=True, nullable=False, index=True)
    avatar_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
