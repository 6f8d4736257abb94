"""
CallBlock Model - Standing Refusal of Call Requests

Created when a responder rejects a request. The `blocked` flag is
authoritative; the row is removed when the blocker unblocks.
"""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from datetime import datetime
import uuid

from .database import Base


class CallBlock(Base):
    """Per-match, per-direction call block"""
    __tablename__ = "call_blocks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    match_id = Column(String(36), ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, index=True)
    blocker_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    blocked_user_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    blocked = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('match_id', 'blocked_user_id', name='uq_call_block_match_blocked'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "match_id": self.match_id,
            "blocker_id": self.blocker_id,
            "blocked_user_id": self.blocked_user_id,
            "blocked": self.blocked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
