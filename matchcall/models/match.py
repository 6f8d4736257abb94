"""
Match Model - Mutual Interest Between Two Players

Written by the swipe flow; the calling core only reads it to authorize
actions and to find the other participant.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from datetime import datetime
from typing import Optional
import uuid

from .database import Base


class Match(Base):
    """Pair of players who liked each other"""
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id_1 = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id_2 = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    # pending, matched, rejected
    status = Column(String(20), nullable=False, default='matched')

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user_id_1, self.user_id_2)

    def other_participant(self, user_id: str) -> Optional[str]:
        """Return the participant that is not user_id, or None if user_id is not in the match."""
        if user_id == self.user_id_1:
            return self.user_id_2
        if user_id == self.user_id_2:
            return self.user_id_1
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id_1": self.user_id_1,
            "user_id_2": self.user_id_2,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
