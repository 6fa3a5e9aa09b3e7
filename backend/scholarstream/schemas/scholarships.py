"""Pydantic schemas for scholarships"""
from pydantic import BaseModel, Field
from typing import Optional


class ScholarshipCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    university_name: str = Field(min_length=1, max_length=255)
    image: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    subject_category: Optional[str] = None
    degree: Optional[str] = None
    description: Optional[str] = None
    application_fee: int = Field(ge=0)
    service_charge: int = Field(ge=0)
    deadline: str  # dd/mm/yyyy


class ScholarshipUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    university_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    image: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    subject_category: Optional[str] = None
    degree: Optional[str] = None
    description: Optional[str] = None
    application_fee: Optional[int] = Field(default=None, ge=0)
    service_charge: Optional[int] = Field(default=None, ge=0)
    deadline: Optional[str] = None
