"""SQLAlchemy database models for session-scoped Spotify credentials"""
import datetime

from sqlalchemy import Column, Integer, String, DateTime, BigInteger, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)

class UserCredential(Base):
    """
    OAuth credential and profile snapshot of one user slot in one session.
    A row exists only while at least one of its fields is set.
    """
    __tablename__ = 'user_credentials'
    __table_args__ = (UniqueConstraint('session_id', 'user_slot', name='uq_session_slot'),)

    id = Column(Integer, primary_key=True)
    session_id = Column(String, nullable=False, index=True)
    user_slot = Column(Integer, nullable=False)
    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    # Access token expiry as epoch milliseconds
    expires_at = Column(BigInteger, nullable=True)
    profile = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
