"""
CallRequest Model - Call Solicitation Between Matched Players

One row per (match, requester). Re-requesting refreshes the row instead of
inserting a new one, so a requester never has two pending requests on a match.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime
from enum import Enum
import uuid

from .database import Base


class CallRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class CallType(str, Enum):
    VOICE = "voice"
    VIDEO = "video"


class CallRequest(Base):
    """Voice/video call request"""
    __tablename__ = "call_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    match_id = Column(String(36), ForeignKey('matches.id', ondelete='CASCADE'), nullable=False, index=True)
    requester_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    type = Column(String(10), nullable=False, default=CallType.VOICE.value)
    status = Column(String(20), nullable=False, default=CallRequestStatus.PENDING.value, index=True)

    # Timing
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('match_id', 'requester_id', name='uq_call_request_match_requester'),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == CallRequestStatus.PENDING.value

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self):
        return {
            "id": self.id,
            "match_id": self.match_id,
            "requester_id": self.requester_id,
            "type": self.type,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
