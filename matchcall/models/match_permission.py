"""
MatchPermission Model - Which Call Kinds a Participant Accepts
"""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from datetime import datetime
import uuid

from .database import Base


class MatchPermission(Base):
    """Per-participant call preferences for a match"""
    __tablename__ = "match_permissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    match_id = Column(String(36), ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    allow_voice = Column(Boolean, default=False, nullable=False)
    allow_video = Column(Boolean, default=False, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('match_id', 'user_id', name='uq_match_permission_user'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "match_id": self.match_id,
            "user_id": self.user_id,
            "allow_voice": self.allow_voice,
            "allow_video": self.allow_video,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
