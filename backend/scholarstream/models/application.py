"""Application model"""
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from scholarstream.models.base import Base

APPLICATION_STATUSES = ("pending", "approved", "rejected")
PAYMENT_STATUSES = ("unpaid", "paid")


class Application(Base):
    """A student's application to a scholarship, with approval and payment state"""
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("user_id", "scholarship_id", name="uq_applications_user_scholarship"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    scholarship_id = Column(Integer, ForeignKey("scholarships.id"), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=True)
    application_fee = Column(Integer, nullable=True)  # snapshot of the scholarship fee at submission
    service_charge = Column(Integer, nullable=True)
    applicant_fields = Column(JSON, nullable=False, default=dict)
    application_status = Column(String(20), default="pending", nullable=False, index=True)
    payment_status = Column(String(20), default="unpaid", nullable=False, index=True)
    application_date = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    stripe_session_id = Column(String(255), nullable=True)
    feedback = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="applications")
    scholarship = relationship("Scholarship", back_populates="applications")
