"""SQLAlchemy ORM models for user storage."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class User(Base):
    """An OAuth-authenticated account, looked up by access token."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), index=True)
    access_token = Column(String(512), nullable=False, index=True)
    expires_in = Column(Integer)
    leads_per_week = Column(Integer)
    permissions = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
