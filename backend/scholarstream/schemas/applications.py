"""Pydantic schemas for applications"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class SubmitApplicationRequest(BaseModel):
    scholarship_id: int
    user_id: Optional[int] = None  # must match the caller when present
    applicant_fields: Dict[str, Any] = Field(default_factory=dict)  # phone, address, degree, results...


class ApplicationStatusRequest(BaseModel):
    application_status: str  # 'pending', 'approved', 'rejected'


class FeedbackRequest(BaseModel):
    feedback: str = Field(max_length=5000)
