"""Scholarship model"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from scholarstream.models.base import Base


class Scholarship(Base):
    """Scholarship postings with their fee schedule and deadline"""
    __tablename__ = "scholarships"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    university_name = Column(String(255), nullable=False)
    image = Column(String(1024), nullable=True)
    country = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True, index=True)  # e.g. 'Full fund', 'Partial'
    subject_category = Column(String(100), nullable=True)
    degree = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    application_fee = Column(Integer, nullable=False, default=0)  # whole currency units
    service_charge = Column(Integer, nullable=False, default=0)  # whole currency units
    deadline = Column(String(10), nullable=False)  # dd/mm/yyyy
    post_date = Column(String(10), nullable=False)  # dd/mm/yyyy
    posted_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    applications = relationship("Application", back_populates="scholarship")
