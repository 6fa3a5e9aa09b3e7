"""Pydantic schemas for payments"""
from pydantic import BaseModel


class CheckoutSessionRequest(BaseModel):
    application_id: int
