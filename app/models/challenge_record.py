# app/models/challenge_record.py

from sqlalchemy import Column, String, DateTime, Text, JSON
from infrastructure.postgres_connection import Base


class ChallengeRecord(Base):
    """Durable copy of a challenge, written behind the in-memory room state"""
    __tablename__ = "challenges"

    id = Column(String(64), primary_key=True)
    room_id = Column(String(32), nullable=False, index=True)
    sender_id = Column(String(128), nullable=False, index=True)
    receiver_id = Column(String(128), nullable=False, index=True)
    card_id = Column(String(255), nullable=False)
    card_content = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)
    penalty = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, index=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ChallengeRecord(id={self.id}, room_id={self.room_id}, status={self.status})>"
