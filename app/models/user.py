from datetime import datetime

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship

from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    profile_image_url = Column(String(512), nullable=True)
    bio = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    is_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token_hash = Column(String(128), nullable=True)
    email_verification_expires_at = Column(DateTime, nullable=True)
    reset_token_hash = Column(String(128), unique=True, nullable=True)
    reset_token_expires_at = Column(DateTime, nullable=True)

    tracks = relationship(
        "Track",
        back_populates="author",
        cascade="all, delete-orphan",
    )
