"""User model"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from scholarstream.models.base import Base

USER_ROLES = ("student", "moderator", "admin")


class User(Base):
    """Registered accounts, keyed by the email carried in verified ID tokens"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    role = Column(String(20), default="student", nullable=False)  # 'student', 'moderator', 'admin'
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    applications = relationship("Application", back_populates="user")
