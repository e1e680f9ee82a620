"""Auth account for the local auth provider (email/password or federated)."""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from nexus.db.base import Base


class Account(Base):
    __tablename__ = "accounts"

    uid = Column(String(64), primary_key=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(256), nullable=True)  # NULL for federated-only accounts
    display_name = Column(String(256), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    provider = Column(String(32), nullable=False, server_default="password")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
